from __future__ import annotations


class WorkflowError(RuntimeError):
    """Base class for failures that abort a Bateo de ventas run."""


class LoginFailed(WorkflowError):
    """The login page showed an explicit error message."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Login failed: {reason}")
        self.reason = reason


class LoginTimedOut(WorkflowError):
    """No login outcome was observed before the deadline."""

    def __init__(self, last_url: str) -> None:
        super().__init__(f"Login did not navigate away from /Login (url={last_url})")
        self.last_url = last_url


class NavigationError(WorkflowError):
    """A required menu node or landmark never appeared or never expanded."""


class ExportTimeout(WorkflowError):
    """No download event arrived after the export was triggered."""


class FilterMismatchError(WorkflowError):
    """The date inputs did not hold the requested range after the run."""
