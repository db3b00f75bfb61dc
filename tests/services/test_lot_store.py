"""
LotStore tests: FIFO ordering, decrement guards, quantity sums, tag upserts.
"""

from datetime import date

import pytest
from sqlalchemy import func, select

from stock_kernel.domain.values import TagType
from stock_kernel.exceptions import (
    InvalidArgumentError,
    InvariantViolationError,
    LotNotFoundError,
)
from stock_kernel.models.item import ItemModel
from stock_kernel.models.lot_tag import LotTagModel
from stock_kernel.services.lot_store import LotStore

DAY_1 = date(2024, 1, 1)
DAY_2 = date(2024, 1, 2)
DAY_3 = date(2024, 1, 3)


@pytest.fixture
def lot_store(session, deterministic_clock) -> LotStore:
    return LotStore(session, deterministic_clock)


@pytest.fixture
def item_id(session) -> int:
    item = ItemModel(name="Flour", unit="kg")
    session.add(item)
    session.flush()
    return item.id


class TestCreateLot:
    def test_create_returns_id_and_defaults_received_date(self, lot_store, item_id, deterministic_clock):
        lot_id = lot_store.create_lot(item_id, 10)

        lot = lot_store.get_lot(lot_id)
        assert lot.quantity == 10
        assert lot.received_date == deterministic_clock.today()
        assert lot.expiry_date is None

    def test_create_keeps_receipt_metadata(self, lot_store, item_id):
        lot_id = lot_store.create_lot(
            item_id, 4, expiry_date=date(2025, 6, 1), received_date=DAY_2, lot_code="B-17"
        )

        lot = lot_store.get_lot(lot_id)
        assert (lot.received_date, lot.expiry_date, lot.lot_code) == (DAY_2, date(2025, 6, 1), "B-17")

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, lot_store, item_id, quantity):
        with pytest.raises(InvalidArgumentError):
            lot_store.create_lot(item_id, quantity)


class TestListActiveLots:
    def test_fifo_order_by_received_date_then_id(self, lot_store, item_id):
        late = lot_store.create_lot(item_id, 1, received_date=DAY_3)
        early_a = lot_store.create_lot(item_id, 1, received_date=DAY_1)
        middle = lot_store.create_lot(item_id, 1, received_date=DAY_2)
        early_b = lot_store.create_lot(item_id, 1, received_date=DAY_1)

        lots = lot_store.list_active_lots(item_id)

        assert [lot.id for lot in lots] == [early_a, early_b, middle, late]

    def test_exhausted_lots_excluded_but_kept(self, lot_store, item_id):
        first = lot_store.create_lot(item_id, 3, received_date=DAY_1)
        second = lot_store.create_lot(item_id, 3, received_date=DAY_2)
        lot_store.decrement_lot(first, 3)

        assert [lot.id for lot in lot_store.list_active_lots(item_id)] == [second]
        assert [lot.id for lot in lot_store.list_lots(item_id)] == [first, second]
        assert not lot_store.get_lot(first).is_active

    def test_other_items_not_listed(self, lot_store, item_id, session):
        other = ItemModel(name="Sugar", unit="kg")
        session.add(other)
        session.flush()
        lot_store.create_lot(other.id, 5)

        assert lot_store.list_active_lots(item_id) == ()


class TestDecrementLot:
    def test_decrement_reduces_quantity(self, lot_store, item_id):
        lot_id = lot_store.create_lot(item_id, 10)

        lot_store.decrement_lot(lot_id, 4)

        assert lot_store.get_lot(lot_id).quantity == 6

    def test_decrement_to_zero_allowed(self, lot_store, item_id):
        lot_id = lot_store.create_lot(item_id, 10)

        lot_store.decrement_lot(lot_id, 10)

        assert lot_store.get_lot(lot_id).quantity == 0

    def test_overdraw_is_invariant_violation(self, lot_store, item_id):
        lot_id = lot_store.create_lot(item_id, 2)

        with pytest.raises(InvariantViolationError) as exc_info:
            lot_store.decrement_lot(lot_id, 3)

        assert exc_info.value.invariant == "lot_non_negative"
        assert lot_store.get_lot(lot_id).quantity == 2

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive_decrement_is_invariant_violation(self, lot_store, item_id, amount):
        lot_id = lot_store.create_lot(item_id, 2)

        with pytest.raises(InvariantViolationError):
            lot_store.decrement_lot(lot_id, amount)

    def test_unknown_lot(self, lot_store):
        with pytest.raises(LotNotFoundError) as exc_info:
            lot_store.decrement_lot(999_999, 1)

        assert exc_info.value.code == "LOT_NOT_FOUND"


class TestGetCurrentQuantity:
    def test_no_lots_is_zero(self, lot_store, item_id):
        assert lot_store.get_current_quantity(item_id) == 0

    def test_sums_active_and_exhausted(self, lot_store, item_id):
        a = lot_store.create_lot(item_id, 5, received_date=DAY_1)
        lot_store.create_lot(item_id, 7, received_date=DAY_2)
        lot_store.decrement_lot(a, 5)

        assert lot_store.get_current_quantity(item_id) == 7


class TestUpsertTag:
    def _tag_rows(self, session, lot_id):
        return session.execute(
            select(func.count()).select_from(LotTagModel).where(LotTagModel.lot_id == lot_id)
        ).scalar_one()

    def test_same_pair_twice_keeps_one_row_last_wins(self, lot_store, item_id, session):
        """Upserting (lot, vendor) twice leaves one row with the second vendor id."""
        lot_id = lot_store.create_lot(item_id, 1)

        lot_store.upsert_tag(lot_id, TagType.VENDOR, 11)
        tag = lot_store.upsert_tag(lot_id, "vendor", 12)

        assert tag.tag_id == 12
        assert self._tag_rows(session, lot_id) == 1

    def test_different_tag_types_coexist(self, lot_store, item_id, session):
        lot_id = lot_store.create_lot(item_id, 1)

        lot_store.upsert_tag(lot_id, TagType.VENDOR, 1)
        lot_store.upsert_tag(lot_id, TagType.DEPARTMENT, 2)
        lot_store.upsert_tag(lot_id, TagType.MANUFACTURER, 3)

        assert self._tag_rows(session, lot_id) == 3

    def test_unknown_lot(self, lot_store):
        with pytest.raises(LotNotFoundError):
            lot_store.upsert_tag(424_242, TagType.VENDOR, 1)

    def test_bad_tag_id(self, lot_store, item_id):
        lot_id = lot_store.create_lot(item_id, 1)

        with pytest.raises(InvalidArgumentError) as exc_info:
            lot_store.upsert_tag(lot_id, TagType.VENDOR, 0)

        assert exc_info.value.field == "tag_id"

    def test_concurrent_first_insert_falls_back_to_update(
        self, lot_store, item_id, session, monkeypatch
    ):
        """A pair inserted between the lookup and the insert is updated instead."""
        lot_id = lot_store.create_lot(item_id, 1)
        lot_store.upsert_tag(lot_id, TagType.VENDOR, 3)

        real_lookup = lot_store._locked_tag
        lookups = []

        def miss_first_lookup(lot_id_, tag_type):
            lookups.append(tag_type)
            if len(lookups) == 1:
                return None
            return real_lookup(lot_id_, tag_type)

        monkeypatch.setattr(lot_store, "_locked_tag", miss_first_lookup)

        tag = lot_store.upsert_tag(lot_id, TagType.VENDOR, 9)

        assert tag.tag_id == 9
        assert len(lookups) == 2
        session.expire_all()
        rows = session.execute(
            select(LotTagModel.tag_type, LotTagModel.tag_id).where(LotTagModel.lot_id == lot_id)
        ).all()
        assert [tuple(row) for row in rows] == [("vendor", 9)]
