"""
Item lifecycle through the coordinator: create, edit, delete, and the
read projections that follow them.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from stock_kernel.config import StockKernelConfig
from stock_kernel.domain.dtos import AdjustmentContext, ItemData, ItemUpdate, LotDetails
from stock_kernel.domain.values import AdjustmentType
from stock_kernel.exceptions import InvalidArgumentError, ItemNotFoundError
from stock_kernel.models.item import ItemModel
from stock_kernel.services.stock_coordinator import StockCoordinator, StockOutcome

DAY_1 = date(2024, 1, 1)
DAY_2 = date(2024, 1, 2)


class TestCreateItem:
    def test_opening_lot_is_tagged_and_logged(self, coordinator, adjustment_rows):
        result = coordinator.create_item(
            ItemData(
                name="Rice",
                unit="kg",
                price=Decimal("2.50"),
                threshold=4,
                opening_quantity=20,
                received_date=DAY_1,
                expiry_date=date(2025, 1, 1),
                vendor_id=3,
                department_id=7,
                manufacturer_id=9,
                media=["rice.png"],
            )
        )

        assert result.outcome is StockOutcome.APPLIED
        assert result.on_hand == 20

        view = coordinator.get_item(result.item_id)
        assert (view.name, view.unit, view.price, view.threshold) == ("Rice", "kg", Decimal("2.50"), 4)
        assert view.department_id == 7
        assert view.media == ("rice.png",)
        assert view.low_stock is False
        [lot] = view.lots
        assert lot.id == result.lot_ids[0]
        assert lot.tags == {"vendor": 3, "department": 7, "manufacturer": 9}

        [row] = adjustment_rows(result.item_id)
        assert (row.adjustment_type, row.quantity, row.reason) == ("addition", 20, "opening stock")
        assert row.actor_id is None

    def test_zero_opening_quantity_creates_no_lot(self, coordinator, adjustment_rows):
        result = coordinator.create_item(ItemData(name="Salt", unit="kg"))

        assert result.lot_ids == ()
        assert result.on_hand == 0
        assert coordinator.list_lots(result.item_id) == ()
        assert adjustment_rows(result.item_id) == []
        # on_hand 0 <= threshold 0
        assert coordinator.get_item(result.item_id).low_stock is True

    def test_actor_recorded_on_opening_adjustment(self, coordinator, test_context):
        result = coordinator.create_item(ItemData(name="Oil", unit="l", opening_quantity=2), test_context)

        [adjustment] = coordinator.list_adjustments(result.item_id)
        assert adjustment.actor_id == test_context.actor_id
        assert adjustment.reason == "cycle count"


class TestUpdateItem:
    def test_metadata_only_change(self, coordinator, make_item, adjustment_rows):
        item_id = make_item(opening_quantity=10)
        rows_before = len(adjustment_rows(item_id))

        result = coordinator.update_item(item_id, ItemUpdate(name="Basmati", price="3.10", threshold=10))

        assert result.outcome is StockOutcome.APPLIED
        assert result.lot_ids == ()
        view = coordinator.get_item(item_id)
        assert view.name == "Basmati"
        assert view.price == Decimal("3.10")
        assert view.low_stock is True
        assert len(adjustment_rows(item_id)) == rows_before

    def test_raising_target_adds_one_lot(self, coordinator, make_item, adjustment_rows):
        item_id = make_item(opening_quantity=10, received_date=DAY_1)

        result = coordinator.update_item(
            item_id, ItemUpdate(target_quantity=16, received_date=DAY_2, lot_code="TOPUP")
        )

        assert result.on_hand == 16
        [new_lot] = [lot for lot in coordinator.list_lots(item_id) if lot.id in result.lot_ids]
        assert (new_lot.quantity, new_lot.received_date, new_lot.lot_code) == (6, DAY_2, "TOPUP")
        last = adjustment_rows(item_id)[-1]
        assert (last.adjustment_type, last.quantity, last.reason) == ("addition", 6, "item quantity edited")

    def test_raising_target_tags_new_lot(self, coordinator, make_item):
        item_id = make_item(opening_quantity=10, vendor_id=1)

        result = coordinator.update_item(
            item_id,
            ItemUpdate(target_quantity=12, vendor_id=4, department_id=5, manufacturer_id=6),
        )

        [new_lot] = [lot for lot in coordinator.list_lots(item_id) if lot.id in result.lot_ids]
        assert new_lot.tags == {"vendor": 4, "department": 5, "manufacturer": 6}
        assert coordinator.get_item(item_id).department_id == 5

    def test_bad_lot_tag_id_rejected(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            ItemUpdate(target_quantity=3, manufacturer_id=0)

        assert exc_info.value.field == "manufacturer_id"

    def test_lowering_target_subtracts_fifo(self, coordinator, make_item, test_context, lot_quantities):
        item_id = make_item(opening_quantity=5, received_date=DAY_1)
        coordinator.adjust_stock(item_id, 5, "addition", test_context, LotDetails(received_date=DAY_2))

        result = coordinator.update_item(item_id, ItemUpdate(target_quantity=2), test_context)

        assert result.outcome is StockOutcome.APPLIED
        assert result.on_hand == 2
        assert lot_quantities(item_id) == [0, 2]

    def test_target_equal_to_on_hand_writes_no_adjustments(self, coordinator, make_item, adjustment_rows):
        item_id = make_item("Rice", opening_quantity=7)
        rows_before = len(adjustment_rows(item_id))

        result = coordinator.update_item(item_id, ItemUpdate(name="Rice", target_quantity=7))

        assert result.outcome is StockOutcome.NO_CHANGE
        assert result.is_success
        assert result.on_hand == 7
        assert len(adjustment_rows(item_id)) == rows_before

    def test_media_replaced(self, coordinator, make_item):
        item_id = make_item(media=["a.png"])

        coordinator.update_item(item_id, ItemUpdate(media=["b.png", "c.png"]))

        assert coordinator.get_item(item_id).media == ("b.png", "c.png")

    def test_unknown_item(self, coordinator):
        with pytest.raises(ItemNotFoundError):
            coordinator.update_item(404_404, ItemUpdate(name="Ghost"))


class TestDeleteItem:
    def test_delete_drains_every_lot_and_keeps_audit(self, coordinator, make_item, test_context, lot_quantities):
        item_id = make_item(opening_quantity=5, received_date=DAY_1)
        coordinator.adjust_stock(item_id, 3, "addition", test_context, LotDetails(received_date=DAY_2))
        lot_ids = [lot.id for lot in coordinator.list_lots(item_id)]

        result = coordinator.delete_item(item_id)

        assert result.outcome is StockOutcome.APPLIED
        assert list(result.lot_ids) == lot_ids
        assert result.on_hand == 0
        assert lot_quantities(item_id) == [0, 0]
        assert coordinator.get_item(item_id) is None

        trail = coordinator.list_adjustments(item_id)
        assert len(trail) == 4
        drained = trail[-2:]
        assert [a.adjustment_type for a in drained] == [AdjustmentType.SUBTRACTION] * 2
        assert [a.quantity for a in drained] == [5, 3]
        assert {a.reason for a in drained} == {"item deleted"}
        assert sum(a.signed_quantity for a in trail) == 0

    def test_delete_without_stock(self, coordinator, make_item):
        item_id = make_item(opening_quantity=0)

        result = coordinator.delete_item(item_id)

        assert result.lot_ids == ()
        assert coordinator.list_adjustments(item_id) == ()

    def test_deleted_item_rejects_further_operations(self, coordinator, make_item, test_context):
        item_id = make_item(opening_quantity=2)
        coordinator.delete_item(item_id)

        with pytest.raises(ItemNotFoundError):
            coordinator.adjust_stock(item_id, 1, "addition", test_context)
        with pytest.raises(ItemNotFoundError):
            coordinator.update_item(item_id, ItemUpdate(name="Back"))
        with pytest.raises(ItemNotFoundError):
            coordinator.delete_item(item_id)

    def test_deleted_item_leaves_low_stock_listing(self, coordinator, make_item):
        item_id = make_item(opening_quantity=1, threshold=3)
        assert item_id in [view.id for view in coordinator.list_low_stock_items()]

        coordinator.delete_item(item_id)

        assert item_id not in [view.id for view in coordinator.list_low_stock_items()]

    def test_configured_reason_used_for_drain(self, session_factory, deterministic_clock):
        coordinator = StockCoordinator(
            session_factory,
            clock=deterministic_clock,
            config=StockKernelConfig(item_deleted_reason="discontinued"),
        )
        item_id = coordinator.create_item(ItemData(name="Tea", unit="box", opening_quantity=3)).item_id

        coordinator.delete_item(item_id, AdjustmentContext(actor_id=12))

        last = coordinator.list_adjustments(item_id)[-1]
        assert last.reason == "discontinued"
        assert last.actor_id == 12


class TestReads:
    def test_get_unknown_item_is_none(self, coordinator):
        assert coordinator.get_item(123_456) is None

    def test_view_lists_only_active_lots_in_fifo_order(self, coordinator, make_item, test_context):
        item_id = make_item(opening_quantity=2, received_date=DAY_1)
        coordinator.adjust_stock(item_id, 4, "addition", test_context, LotDetails(received_date=DAY_2))
        coordinator.adjust_stock(item_id, 3, "subtraction", test_context)

        view = coordinator.get_item(item_id)

        assert [(lot.received_date, lot.quantity) for lot in view.lots] == [(DAY_2, 3)]
        assert len(coordinator.list_lots(item_id)) == 2

    def test_adjustment_trail_is_ordered_and_timestamped(self, coordinator, make_item, test_context, deterministic_clock):
        item_id = make_item(opening_quantity=4)
        coordinator.adjust_stock(item_id, 1, "subtraction", test_context)

        trail = coordinator.list_adjustments(item_id)

        assert [a.signed_quantity for a in trail] == [4, -1]
        assert trail[0].id < trail[1].id
        assert all(a.created_at.date() == deterministic_clock.today() for a in trail)

    def test_low_stock_listing_sorted_by_id(self, coordinator, make_item):
        first = make_item("Low A", opening_quantity=0, threshold=1)
        make_item("Plenty", opening_quantity=50, threshold=1)
        second = make_item("Low B", opening_quantity=1, threshold=1)

        ids = [view.id for view in coordinator.list_low_stock_items()]

        assert [i for i in ids if i in (first, second)] == [first, second]


class TestUpdatedAt:
    """Every write to an item takes its timestamp from the coordinator's clock."""

    def _updated_at(self, session, item_id):
        session.expire_all()
        value = session.get(ItemModel, item_id).updated_at
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.replace(tzinfo=None)

    def test_stock_adjustment_stamps_clock_time(
        self, coordinator, make_item, test_context, deterministic_clock, session
    ):
        item_id = make_item(opening_quantity=10)
        deterministic_clock.set_time(datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc))

        coordinator.adjust_stock(item_id, 4, "subtraction", test_context)

        assert self._updated_at(session, item_id) == datetime(2024, 3, 5, 14, 30)

    def test_no_change_edit_keeps_timestamp(self, coordinator, make_item, deterministic_clock, session):
        item_id = make_item(opening_quantity=7)
        before = self._updated_at(session, item_id)
        deterministic_clock.advance_days(3)

        result = coordinator.update_item(item_id, ItemUpdate(target_quantity=7))

        assert result.outcome is StockOutcome.NO_CHANGE
        assert self._updated_at(session, item_id) == before
