"""
CONFIG.PY - SINGLE SOURCE OF TRUTH

This module is the ONLY place allowed to read environment variables.
Values are loaded from the process environment, with a project-level ``.env``
file filling anything the environment does not set.

Config is loaded ONCE, on first access, and cached in a single in-memory
Config object. To use a config value, import:

    from erp_automation.config import config

Credentials may be left unset here and supplied on the command line instead;
the CLI validates that a complete set is present before a run starts.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(PROJECT_ROOT / ".env")

if os.getenv("DEBUG_CONFIG") == "1":
    print("[CONFIG] Loaded .env from:", PROJECT_ROOT / ".env")


logger = logging.getLogger(__name__)

DEFAULT_DOWNLOADS_DIR = PROJECT_ROOT / "downloads"
DEFAULT_LOGIN_TIMEOUT_MS = 30_000
DEFAULT_DOWNLOAD_TIMEOUT_MS = 60_000

TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def parse_flag(value: str | None) -> bool:
    """Interpret an on/off switch such as ``HEADLESS``.

    Only ``1``, ``true``, ``yes`` and ``on`` (any case) switch the flag on;
    anything else, including an unset value, leaves it off.
    """

    if value is None:
        return False
    return value.strip().lower() in TRUE_VALUES


def _optional(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key)
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _parse_int(value: str | None, *, key: str, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    if parsed <= 0:
        message = f"Config key {key} must be positive; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    return parsed


def _parse_date(value: str | None, *, key: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        message = f"Config key {key} must be a YYYY-MM-DD date; got {value!r}"
        logger.error(message)
        raise ConfigError(message)


def _clean_url(value: str | None) -> str | None:
    if value is None:
        return None
    return value.rstrip("/") or None


@dataclass(slots=True, frozen=True)
class Config:
    erp_base_url: str | None
    erp_user: str | None
    erp_pass: str | None
    headless: bool
    query_date: date | None
    downloads_dir: Path
    database_url: str | None
    json_log_file: str | None
    alembic_config: str
    login_timeout_ms: int
    download_timeout_ms: int
    chrome_executable: str | None

    @classmethod
    def load_from_env(cls, env: Mapping[str, str] | None = None) -> Config:
        source: Mapping[str, str] = os.environ if env is None else env

        downloads_raw = _optional(source, "DOWNLOADS_DIR")
        downloads_dir = Path(downloads_raw).expanduser() if downloads_raw else DEFAULT_DOWNLOADS_DIR

        return cls(
            erp_base_url=_clean_url(_optional(source, "ERP_BASE_URL")),
            erp_user=_optional(source, "ERP_USER"),
            erp_pass=_optional(source, "ERP_PASS"),
            headless=parse_flag(_optional(source, "HEADLESS")),
            query_date=_parse_date(_optional(source, "QUERY_DATE"), key="QUERY_DATE"),
            downloads_dir=downloads_dir,
            database_url=_optional(source, "DATABASE_URL"),
            json_log_file=_optional(source, "JSON_LOG_FILE"),
            alembic_config=_optional(source, "ALEMBIC_CONFIG") or str(PROJECT_ROOT / "alembic.ini"),
            login_timeout_ms=_parse_int(
                _optional(source, "LOGIN_TIMEOUT_MS"), key="LOGIN_TIMEOUT_MS", default=DEFAULT_LOGIN_TIMEOUT_MS
            ),
            download_timeout_ms=_parse_int(
                _optional(source, "DOWNLOAD_TIMEOUT_MS"),
                key="DOWNLOAD_TIMEOUT_MS",
                default=DEFAULT_DOWNLOAD_TIMEOUT_MS,
            ),
            chrome_executable=_optional(source, "CHROME_EXECUTABLE"),
        )


_config: Config | None = None


def __getattr__(name: str) -> Any:
    global _config
    if name == "config":
        if _config is None:
            _config = Config.load_from_env()
        return _config
    raise AttributeError(name)
