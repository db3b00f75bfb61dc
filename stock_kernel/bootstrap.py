"""
Module: stock_kernel.bootstrap
Responsibility: Wires configuration, logging, engine, immutability listeners,
    schema and the StockCoordinator into one runtime bundle.
Architecture position: Outermost kernel layer.  Imported by the CLI and by
    embedding applications; nothing inside the kernel imports it.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stock_kernel.config import StockKernelConfig, load_config
from stock_kernel.db.engine import create_tables, init_engine_from_url, make_session_factory
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import Clock
from stock_kernel.logging_config import configure_logging, get_logger
from stock_kernel.services.stock_coordinator import StockCoordinator

logger = get_logger("bootstrap")


@dataclass
class StockRuntime:
    """Everything one process needs to run stock operations."""

    config: StockKernelConfig
    engine: Engine
    session_factory: sessionmaker[Session]
    coordinator: StockCoordinator

    def close(self) -> None:
        self.engine.dispose()
        logger.info("stock_runtime_closed")


def build_runtime(
    config: StockKernelConfig | None = None,
    *,
    clock: Clock | None = None,
    create_schema: bool = True,
) -> StockRuntime:
    """
    Build a StockRuntime from ``config`` (or the loaded defaults).

    Args:
        config: Kernel configuration.  ``load_config()`` when omitted.
        clock: Clock injected into the coordinator.
        create_schema: Create missing tables (idempotent).
    """
    config = config or load_config()
    configure_logging(level=config.logging_level)

    engine = init_engine_from_url(
        config.database_url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        sqlite_busy_timeout=config.sqlite_busy_timeout,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables(engine)

    session_factory = make_session_factory(engine)
    coordinator = StockCoordinator(session_factory, clock=clock, config=config)
    return StockRuntime(
        config=config,
        engine=engine,
        session_factory=session_factory,
        coordinator=coordinator,
    )


def build_coordinator(
    config: StockKernelConfig | None = None,
    *,
    clock: Clock | None = None,
) -> StockCoordinator:
    """Shortcut for callers that only need the coordinator."""
    return build_runtime(config, clock=clock).coordinator
