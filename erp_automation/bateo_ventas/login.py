"""Login outcome resolution for the ERP web client.

The ERP gives no single "login finished" signal: depending on the build it
redirects, rewrites the DOM in place, or both, with variable latency. The
resolver therefore submits the credentials and then samples the page until one
of three terminal outcomes is observed or a wall-clock deadline passes.
"""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Union
from urllib.parse import urljoin

from playwright.async_api import Page, TimeoutError

from erp_automation.common.json_logger import JsonLogger, log_event

from . import page_selectors as sel
from .errors import LoginFailed, LoginTimedOut, NavigationError
from .waits import best_effort, settle_page

LOGIN_TIMEOUT_MS = 30_000
LOGIN_FORM_TIMEOUT_MS = 30_000
POLL_INTERVAL_S = 0.5
LOGIN_URL_PATTERN = re.compile(r"/login\b", re.IGNORECASE)


@dataclass(frozen=True)
class Credentials:
    base_url: str
    username: str
    password: str = field(repr=False)

    @property
    def login_url(self) -> str:
        return urljoin(self.base_url, sel.LOGIN_PATH)


@dataclass(frozen=True)
class LoggedIn:
    final_url: str
    signal: str


@dataclass(frozen=True)
class Failed:
    reason: str


@dataclass(frozen=True)
class TimedOut:
    last_url: str


AuthenticationOutcome = Union[LoggedIn, Failed, TimedOut]


def is_login_url(url: str | None) -> bool:
    return bool(LOGIN_URL_PATTERN.search(url or ""))


async def _safe_has_selector(page: Page, selector: str) -> bool:
    try:
        return await page.query_selector(selector) is not None
    except Exception:
        return False


async def _safe_first_text(page: Page, selector: str) -> str:
    try:
        handle = await page.query_selector(selector)
        if handle is None:
            return ""
        text = await handle.text_content()
    except Exception:
        return ""
    return (text or "").strip()


async def sample_login_state(page: Page) -> AuthenticationOutcome | None:
    """Check the page once; ``None`` means no terminal signal yet.

    Order matters: a URL that left the login page wins over a landmark, and
    either success signal wins over an error banner seen in the same tick.
    """

    current_url = page.url or ""
    if not is_login_url(current_url):
        return LoggedIn(final_url=current_url, signal="url")

    for landmark in sel.POST_LOGIN_LANDMARKS:
        if await _safe_has_selector(page, landmark):
            return LoggedIn(final_url=current_url, signal="landmark")

    error_text = await _safe_first_text(page, sel.LOGIN_ERROR)
    if error_text:
        return Failed(reason=error_text)
    return None


async def _submit_credentials(page: Page, credentials: Credentials, *, logger: JsonLogger) -> None:
    await page.fill(sel.LOGIN_USERNAME, credentials.username)
    await page.fill(sel.LOGIN_PASSWORD, credentials.password)

    click_error: str | None = None
    try:
        submit = await page.query_selector(sel.LOGIN_SUBMIT)
    except Exception as exc:
        submit = None
        click_error = str(exc)
    if submit is not None:
        click_error = await best_effort(submit.click())
    enter_error = await best_effort(page.press(sel.LOGIN_PASSWORD, "Enter"))

    log_event(
        logger=logger,
        phase="login",
        status="ok" if not (click_error and enter_error) else "warn",
        message="Submitted login form",
        username=credentials.username,
        submit_button_found=submit is not None,
        click_error=click_error,
        enter_error=enter_error,
    )


async def resolve_login(
    page: Page,
    credentials: Credentials,
    *,
    logger: JsonLogger,
    timeout_ms: int = LOGIN_TIMEOUT_MS,
    poll_interval_s: float = POLL_INTERVAL_S,
    form_timeout_ms: int = LOGIN_FORM_TIMEOUT_MS,
) -> AuthenticationOutcome:
    login_url = credentials.login_url
    log_event(logger=logger, phase="login", message="Navigating to login page", login_url=login_url)
    await page.goto(login_url, wait_until="domcontentloaded")

    try:
        await page.wait_for_selector(sel.LOGIN_USERNAME, state="visible", timeout=form_timeout_ms)
    except TimeoutError as exc:
        raise NavigationError(
            f"Login form field {sel.LOGIN_USERNAME} not visible after {form_timeout_ms}ms"
        ) from exc

    await _submit_credentials(page, credentials, logger=logger)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    await settle_page(page)

    samples = 0
    while True:
        samples += 1
        outcome = await sample_login_state(page)
        if outcome is not None:
            break
        if loop.time() >= deadline:
            outcome = TimedOut(last_url=page.url or "")
            break
        await asyncio.sleep(poll_interval_s)

    if isinstance(outcome, LoggedIn):
        log_event(
            logger=logger,
            phase="login",
            message="Login OK",
            final_url=outcome.final_url,
            signal=outcome.signal,
            samples=samples,
        )
    elif isinstance(outcome, Failed):
        log_event(
            logger=logger,
            phase="login",
            status="error",
            message="Login rejected by the application",
            reason=outcome.reason,
            samples=samples,
        )
    else:
        log_event(
            logger=logger,
            phase="login",
            status="error",
            message="Login outcome not observed before deadline",
            last_url=outcome.last_url,
            timeout_ms=timeout_ms,
            samples=samples,
        )
    return outcome


async def login(
    page: Page,
    credentials: Credentials,
    *,
    logger: JsonLogger,
    timeout_ms: int = LOGIN_TIMEOUT_MS,
    poll_interval_s: float = POLL_INTERVAL_S,
) -> LoggedIn:
    """Log in or raise :class:`LoginFailed` / :class:`LoginTimedOut`."""

    outcome = await resolve_login(
        page,
        credentials,
        logger=logger,
        timeout_ms=timeout_ms,
        poll_interval_s=poll_interval_s,
    )
    if isinstance(outcome, Failed):
        raise LoginFailed(outcome.reason)
    if isinstance(outcome, TimedOut):
        raise LoginTimedOut(outcome.last_url)
    return outcome
