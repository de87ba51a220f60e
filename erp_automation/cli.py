from __future__ import annotations

import argparse
import asyncio
from datetime import date
from pathlib import Path
from typing import List, Optional

from erp_automation.common.date_utils import parse_ymd
from erp_automation.common.json_logger import get_logger, log_event, new_run_id
from erp_automation.config import ConfigError, parse_flag


def _parse_query_date(value: str) -> date:
    try:
        return parse_ymd(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc


async def _run_async(args: argparse.Namespace) -> int:
    from erp_automation.bateo_ventas.settings import load_settings
    from erp_automation.bateo_ventas.workflow import run_workflow

    run_id = args.run_id or new_run_id()
    try:
        logger = get_logger(run_id=run_id)
    except ConfigError as exc:
        print(f"[FAIL] {exc}", flush=True)
        return 2
    try:
        try:
            settings = load_settings(
                run_id=run_id,
                base_url=args.base_url,
                username=args.username,
                password=args.password,
                headless=args.headless,
                query_date=args.query_date,
                downloads_dir=args.downloads_dir,
                open_mode=args.open_mode,
                skip_ingest=args.skip_ingest,
            )
        except (ValueError, ConfigError) as exc:
            log_event(logger=logger, phase="prereq", status="error", message=str(exc))
            print(f"[FAIL] {exc}", flush=True)
            return 2

        result = await run_workflow(settings=settings, logger=logger)
        return result.exit_code
    finally:
        logger.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="erp_automation")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Log in, export Bateo de ventas and save the file")
    run_parser.add_argument("--base-url", dest="base_url", default=None, help="ERP base URL (ERP_BASE_URL)")
    run_parser.add_argument("--username", default=None, help="ERP username (ERP_USER)")
    run_parser.add_argument("--password", default=None, help="ERP password (ERP_PASS)")
    run_parser.add_argument(
        "--headless",
        type=parse_flag,
        default=None,
        metavar="FLAG",
        help="Run without a window when 1/true/yes/on (HEADLESS)",
    )
    run_parser.add_argument(
        "--query-date",
        dest="query_date",
        type=_parse_query_date,
        default=None,
        help="Reference date YYYY-MM-DD for the range (QUERY_DATE, default today)",
    )
    run_parser.add_argument("--downloads-dir", dest="downloads_dir", type=Path, default=None)
    run_parser.add_argument("--run-id", dest="run_id", default=None, help="Override generated run id")
    run_parser.add_argument(
        "--open-mode",
        dest="open_mode",
        choices=["menu", "direct"],
        default="menu",
        help="Reach the report through the dashboard menu or by URL",
    )
    run_parser.add_argument(
        "--skip-ingest", dest="skip_ingest", action="store_true", help="Do not load the export into the database"
    )

    serve_parser = subparsers.add_parser("serve", help="Serve the on-demand export endpoints over HTTP")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8080)

    db_parser = subparsers.add_parser("db", help="Database operations")
    db_sub = db_parser.add_subparsers(dest="db_command", required=True)
    upgrade_parser = db_sub.add_parser("upgrade", help="Run Alembic upgrade")
    upgrade_parser.add_argument("--revision", default="head")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        return asyncio.run(_run_async(args))

    if args.command == "serve":
        import uvicorn

        uvicorn.run("erp_automation.api:app", host=args.host, port=args.port)
        return 0

    if args.command == "db" and args.db_command == "upgrade":
        from erp_automation.common.db import run_alembic_upgrade
        from erp_automation.config import config as runtime_config

        if not runtime_config.database_url:
            print("[db] DATABASE_URL is not configured")
            return 2
        run_alembic_upgrade(
            revision=args.revision,
            database_url=runtime_config.database_url,
            alembic_config_path=runtime_config.alembic_config,
        )
        return 0

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
