"""
Operator CLI for the stock kernel.

Usage:
    stock-kernel [--config PATH] init-db
    stock-kernel [--config PATH] show-item ITEM_ID
    stock-kernel [--config PATH] history ITEM_ID
    stock-kernel [--config PATH] low-stock

Output is JSON on stdout.  Exit code 0 on success, 1 on error.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any

from stock_kernel.exceptions import StockKernelError


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stock-kernel",
        description="Inspect and initialize the stock ledger database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file layered over the bundled defaults",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the stock ledger tables")

    show = sub.add_parser("show-item", help="Print an item with its active lots")
    show.add_argument("item_id", type=int)

    history = sub.add_parser("history", help="Print an item's adjustment trail")
    history.add_argument("item_id", type=int)

    sub.add_parser("low-stock", help="List items at or below their threshold")

    return parser.parse_args(argv)


def _to_json(value: Any) -> str:
    if dataclasses.is_dataclass(value):
        value = dataclasses.asdict(value)
    elif isinstance(value, tuple):
        value = [dataclasses.asdict(v) for v in value]
    return json.dumps(value, indent=2, default=str)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so argument errors fail fast
    from stock_kernel.bootstrap import build_runtime
    from stock_kernel.config import load_config

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"ERROR: Failed to load config: {exc}", file=sys.stderr)
        return 1

    runtime = build_runtime(config)
    coordinator = runtime.coordinator
    try:
        if args.command == "init-db":
            print(f"Tables ready at {runtime.engine.url.render_as_string(hide_password=True)}")
        elif args.command == "show-item":
            view = coordinator.get_item(args.item_id)
            if view is None:
                print(f"ERROR: Item {args.item_id} not found", file=sys.stderr)
                return 1
            print(_to_json(view))
        elif args.command == "history":
            print(_to_json(coordinator.list_adjustments(args.item_id)))
        elif args.command == "low-stock":
            print(_to_json(coordinator.list_low_stock_items()))
    except StockKernelError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        runtime.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
