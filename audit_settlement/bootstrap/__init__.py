"""Engine wiring from configuration and ports."""

from audit_settlement.bootstrap.engine import (
    Engine,
    build_engine,
    build_engine_from_environment,
    get_engine,
    reset_engine,
    set_engine,
)

__all__ = [
    "Engine",
    "build_engine",
    "build_engine_from_environment",
    "get_engine",
    "reset_engine",
    "set_engine",
]
