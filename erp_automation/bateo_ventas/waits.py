from __future__ import annotations

import contextlib
from typing import Any, Awaitable

from playwright.async_api import Page

SETTLE_LOAD_STATES = ("domcontentloaded", "networkidle")


async def settle_page(page: Page) -> None:
    """Wait for the DOM and then the network to go quiet, ignoring timeouts."""

    for state in SETTLE_LOAD_STATES:
        with contextlib.suppress(Exception):
            await page.wait_for_load_state(state)


async def best_effort(action: Awaitable[Any]) -> str | None:
    """Await ``action`` and return the error text instead of raising."""

    try:
        await action
    except Exception as exc:
        return str(exc) or type(exc).__name__
    return None
