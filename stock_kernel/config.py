"""
Module: stock_kernel.config
Responsibility: Typed runtime configuration for the stock kernel.  Loads the
    bundled ``defaults.yaml``, overlays an optional operator YAML file and the
    ``STOCK_KERNEL_DATABASE_URL`` environment variable, and returns a frozen
    ``StockKernelConfig``.
Architecture position: Kernel > Config.  Imported by bootstrap and cli only;
    services receive the values they need through constructor injection.

Failure modes:
    - FileNotFoundError if an explicit config path does not exist.
    - yaml.YAMLError on malformed YAML.
    - ValueError from StockKernelConfig.__post_init__ on invalid values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from stock_kernel.logging_config import get_logger

logger = get_logger("config")

DATABASE_URL_ENV = "STOCK_KERNEL_DATABASE_URL"

_DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class StockKernelConfig:
    """Configuration values for engine, logging and default adjustment reasons."""

    database_url: str = "sqlite:///stock_kernel.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    sqlite_busy_timeout: int = 30

    log_level: str = "INFO"

    opening_stock_reason: str = "opening stock"
    item_edit_reason: str = "item quantity edited"
    item_deleted_reason: str = "item deleted"

    def __post_init__(self):
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        for name in ("pool_size", "pool_timeout", "sqlite_busy_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_overflow < 0:
            raise ValueError("max_overflow cannot be negative")
        if self.log_level.upper() not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )
        for name in ("opening_stock_reason", "item_edit_reason", "item_deleted_reason"):
            if not getattr(self, name).strip():
                raise ValueError(f"{name} must not be blank")

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], val)
        else:
            merged[key] = val
    return merged


def config_from_dict(data: dict[str, Any]) -> StockKernelConfig:
    """Build a StockKernelConfig from the nested YAML layout."""
    database = data.get("database", {})
    log = data.get("logging", {})
    reasons = data.get("reasons", {})

    kwargs: dict[str, Any] = {}
    for key in (
        "echo",
        "pool_size",
        "max_overflow",
        "pool_timeout",
        "pool_recycle",
        "sqlite_busy_timeout",
    ):
        if key in database:
            kwargs[key] = database[key]
    if "url" in database:
        kwargs["database_url"] = database["url"]
    if "level" in log:
        kwargs["log_level"] = str(log["level"])
    if "opening_stock" in reasons:
        kwargs["opening_stock_reason"] = reasons["opening_stock"]
    if "item_edit" in reasons:
        kwargs["item_edit_reason"] = reasons["item_edit"]
    if "item_deleted" in reasons:
        kwargs["item_deleted_reason"] = reasons["item_deleted"]

    return StockKernelConfig(**kwargs)


def load_config(
    path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> StockKernelConfig:
    """
    Load configuration: bundled defaults, then ``path``, then environment.

    Args:
        path: Optional operator YAML file layered over the defaults.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated, frozen StockKernelConfig.
    """
    environ = os.environ if environ is None else environ

    data = load_yaml_file(_DEFAULTS_PATH)
    if path is not None:
        data = _merge(data, load_yaml_file(Path(path)))

    env_url = environ.get(DATABASE_URL_ENV)
    if env_url:
        data = _merge(data, {"database": {"url": env_url}})

    config = config_from_dict(data)
    logger.debug(
        "config_loaded",
        extra={
            "source": str(path) if path is not None else "defaults",
            "env_override": bool(env_url),
            "dialect": config.database_url.split(":", 1)[0],
        },
    )
    return config
