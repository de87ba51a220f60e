"""Shared services for the ERP automation modules."""

from typing import Any

__all__ = [
    "JsonLogger",
    "log_event",
    "run_alembic_upgrade",
    "session_scope",
]


def __getattr__(name: str) -> Any:
    if name == "JsonLogger":
        from .json_logger import JsonLogger as _JsonLogger

        return _JsonLogger
    if name == "log_event":
        from .json_logger import log_event as _log_event

        return _log_event
    if name == "run_alembic_upgrade":
        from .db import run_alembic_upgrade as _run_alembic_upgrade

        return _run_alembic_upgrade
    if name == "session_scope":
        from .db import session_scope as _session_scope

        return _session_scope
    raise AttributeError(name)
