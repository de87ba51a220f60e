from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from erp_automation.common.date_utils import get_query_date
from erp_automation.config import config

from .export import DOWNLOAD_TIMEOUT_MS
from .login import LOGIN_TIMEOUT_MS, Credentials

OPEN_MODES = ("menu", "direct")
CREDENTIAL_ERROR = "ERP credentials (base URL/username/password) are missing."


@dataclass
class WorkflowSettings:
    run_id: str
    credentials: Credentials
    query_date: date
    downloads_dir: Path
    headless: bool = False
    open_mode: str = "menu"
    database_url: Optional[str] = None
    skip_ingest: bool = False
    login_timeout_ms: int = LOGIN_TIMEOUT_MS
    download_timeout_ms: int = DOWNLOAD_TIMEOUT_MS
    chrome_executable: Optional[str] = None


def _pick(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None and value.strip():
            return value.strip()
    return None


def load_settings(
    *,
    run_id: str,
    base_url: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    headless: Optional[bool] = None,
    query_date: Optional[date] = None,
    downloads_dir: Optional[Path] = None,
    open_mode: str = "menu",
    skip_ingest: bool = False,
) -> WorkflowSettings:
    """Merge command-line overrides over the loaded config.

    Raises ``ValueError`` when no complete set of credentials is available.
    """

    resolved_base = _pick(base_url, config.erp_base_url)
    resolved_user = _pick(username, config.erp_user)
    resolved_pass = _pick(password, config.erp_pass)
    missing = [
        label
        for label, value in (("base_url", resolved_base), ("username", resolved_user), ("password", resolved_pass))
        if not value
    ]
    if missing:
        raise ValueError(f"{CREDENTIAL_ERROR} Missing: {', '.join(missing)}")
    if open_mode not in OPEN_MODES:
        raise ValueError(f"Unknown open mode {open_mode!r}; expected one of {', '.join(OPEN_MODES)}")

    return WorkflowSettings(
        run_id=run_id,
        credentials=Credentials(base_url=resolved_base, username=resolved_user, password=resolved_pass),
        query_date=get_query_date(query_date or config.query_date),
        downloads_dir=downloads_dir or config.downloads_dir,
        headless=config.headless if headless is None else headless,
        open_mode=open_mode,
        database_url=config.database_url,
        skip_ingest=skip_ingest,
        login_timeout_ms=config.login_timeout_ms,
        download_timeout_ms=config.download_timeout_ms,
        chrome_executable=config.chrome_executable,
    )
