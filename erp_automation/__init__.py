"""Top-level package for the ERP export automation and ingestion."""

from typing import Any

__all__ = ["run_workflow"]


def __getattr__(name: str) -> Any:
    if name == "run_workflow":
        from erp_automation.bateo_ventas.workflow import run_workflow as _run_workflow

        return _run_workflow
    raise AttributeError(name)
