"""Bateo de ventas export automation for the ERP web client."""

from typing import Any

__all__ = ["run_workflow", "compute_date_range"]


def __getattr__(name: str) -> Any:
    if name == "run_workflow":
        from .workflow import run_workflow as _run_workflow

        return _run_workflow
    if name == "compute_date_range":
        from erp_automation.common.date_utils import compute_date_range as _compute_date_range

        return _compute_date_range
    raise AttributeError(name)
