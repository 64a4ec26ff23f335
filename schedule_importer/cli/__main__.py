from __future__ import annotations

import argparse
import os
import sys
from contextlib import ExitStack
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.gateway import PersistenceError
from ..db.memory import InMemoryGateway
from ..db.postgres import PostgresGateway, connect
from ..excel.reader import WorkbookReadError
from ..logging.init import log_summary, setup_logging
from ..services.export import export_schedule_csv
from ..services.orchestrator import ImportInProgressError, ImportOrchestrator, ImportValidationError
from ..services.summary import render_report, render_summary_line

"""CLI entrypoint.

    python -m schedule_importer.cli [--config PATH] [--debug] [--inspect-data] [--yes] [--export-csv DIR]

Flow: load .env and config -> parse workbook -> (confirm) -> import -> report.

Exit codes:
    0  everything imported
    2  partial failure (something failed or was skipped)
    1  fatal (config, unreadable workbook, duplicate keys, aborted phase)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; .env values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Event schedule workbook -> PostgreSQL importer")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print the parsed records and exit")
    p.add_argument("--yes", "-y", action="store_true", help="Import without asking for confirmation")
    p.add_argument("--export-csv", type=Path, metavar="DIR", help="Write parsed records as CSV into DIR")
    return p.parse_args(argv)


def _inspect_data(schedule) -> int:
    for title, frame in (
        ("SESSIONS", schedule.sessions_frame()),
        ("BOOTHS", schedule.booths_frame()),
        ("REGISTRATIONS", schedule.registrations_frame()),
    ):
        print(f"{title} ({len(frame)})")
        if not frame.empty:
            print(frame.to_string(index=False))
    return EXIT_SUCCESS_ALL


def _confirm(schedule) -> bool:
    prompt = (
        f"Import {len(schedule.sessions)} sessions, {len(schedule.booths)} booths, "
        f"{len(schedule.registrations)} registrations? [y/N] "
    )
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def main(argv: list[str] | None = None) -> int:
    # [] を渡されたときに sys.argv を読まないよう None のときだけ補完
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    workbook = Path(cfg.source_workbook)
    if not workbook.exists():
        logger.error(f"workbook not found: {workbook}")
        return EXIT_FATAL
    logger.info(f"Parsing workbook: {workbook}")

    with ExitStack() as stack:
        gateway = _open_gateway(cfg, stack, logger)
        orchestrator = ImportOrchestrator(gateway, cfg)
        # どの終了経路でもパース時のエラーレコードをログファイルへ残す
        stack.callback(_flush_error_log, orchestrator.error_log, logger)
        try:
            schedule = orchestrator.parse(workbook)
        except WorkbookReadError as e:
            logger.error(f"workbook: {e}")
            return EXIT_FATAL

        for message in schedule.errors:
            logger.warning(message)
        if schedule.needs_review:
            logger.warning("some sessions carry guessed dates, times or names; review them before importing")

        if args.export_csv is not None:
            for path in export_schedule_csv(schedule, args.export_csv):
                logger.info(f"exported: {path}")

        if args.inspect_data:
            return _inspect_data(schedule)

        if not args.yes and not _confirm(schedule):
            logger.info("import cancelled")
            return EXIT_SUCCESS_ALL

        try:
            event = gateway.fetch_event(cfg.event)
            summary = orchestrator.run_import(event=event)
        except (ImportValidationError, ImportInProgressError, PersistenceError) as e:
            logger.error(f"import: {e}")
            return EXIT_FATAL

    for line in render_report(summary).splitlines():
        logger.info(line)
    # log_summary が "SUMMARY " を付けるので先頭を落とす
    log_summary(render_summary_line(summary).removeprefix("SUMMARY "))

    if summary.aborted:
        return EXIT_FATAL
    if summary.has_problems:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _flush_error_log(error_log, logger) -> None:
    path = error_log.flush()
    if path is not None:
        logger.info(f"error log written: {path}")


def _open_gateway(cfg, stack: ExitStack, logger):
    """PostgreSQL when reachable, otherwise the in-memory gateway (dry run)."""
    # テスト等で DB 接続を完全に無効化: DISABLE_DB_CONNECT=1
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> memory mode")
        return InMemoryGateway()
    try:
        conn = stack.enter_context(connect(cfg.database))
    except psycopg2.Error as e:
        if os.getenv("SUPPRESS_DB_WARNING") == "1":
            logger.debug(f"DB connection failed -> fallback to memory mode: {e}")
        else:
            logger.info(f"DB connection failed -> fallback to memory mode: {e}")
        return InMemoryGateway()
    logger.info("mode=live")
    return PostgresGateway(conn, timezone=cfg.timezone, cached_views=cfg.cached_views)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
