"""Read-only query selectors."""

from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.item_selector import ItemSelector

__all__ = ["BaseSelector", "ItemSelector"]
