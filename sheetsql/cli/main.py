from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.query_engine import connect, load_sheet
from ..excel.reader import WorkbookReadError, load_workbook_file
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import IngestConfig
from ..models.schema import ProcessedWorkbook
from ..services.processor import process_workbook
from ..services.schema import build_schema_context
from ..services.summary import collect_stats, render_summary_line

"""CLI entrypoint.

    python -m sheetsql.cli WORKBOOK [--config PATH] [--debug] [--inspect] [--load]

Exit codes: 0 every sheet processed, 2 one or more sheets failed, 1 fatal
(configuration, unreadable workbook, database load failure).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so DATABASE_URL / PG* settings win over the YAML database section."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="sheetsql", description="Recover tables from a spreadsheet workbook"
    )
    p.add_argument("workbook", type=Path, help="Path to the .xlsx workbook")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect", action="store_true", help="Print detected structure and schema context"
    )
    p.add_argument("--load", action="store_true", help="Load the tables into PostgreSQL")
    return p.parse_args(argv)


def _inspect(workbook: ProcessedWorkbook) -> None:
    for sheet in workbook.sheets:
        print(
            f"SHEET: {sheet.original_name} -> {sheet.name} type={sheet.sheet_type.value} "
            f"header_row={sheet.header_row} rows={sheet.row_count}"
        )
        print(f"  columns={[f'{c.name}:{c.storage_type.value}' for c in sheet.columns]}")
        if sheet.aggregate_info is not None and sheet.aggregate_info.aggregate_period_names:
            print(f"  aggregate_periods={sheet.aggregate_info.aggregate_period_names}")
        for row in sheet.preview_rows[:3]:
            print(f"    {[v.isoformat() if hasattr(v, 'isoformat') else v for v in row]}")
        if sheet.error:
            print(f"  error={sheet.error}")
    print(build_schema_context(workbook.schema))


@contextmanager
def _db_cursor(cfg: IngestConfig):
    conn = connect(cfg.database)
    try:
        with conn:  # commit on success, rollback on error
            with conn.cursor() as cur:
                yield cur
    finally:
        conn.close()


def _load(workbook: ProcessedWorkbook, cfg: IngestConfig, logger: logging.Logger) -> int:
    loaded = 0
    with _db_cursor(cfg) as cur:
        for sheet in workbook.sheets:
            loaded += load_sheet(cur, sheet)
    logger.info(f"loaded {loaded} rows into PostgreSQL")
    return loaded


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    # None only: an explicit [] must not pick up the test runner's arguments
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(logging.DEBUG)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(cfg.error_log_dir)
    start = datetime.now(UTC)
    try:
        loaded = load_workbook_file(args.workbook)
        workbook = process_workbook(loaded, args.workbook.name, cfg, error_log=error_log)
    except WorkbookReadError as e:
        logger.error(f"workbook: {e}")
        return EXIT_FATAL
    finally:
        log_path = error_log.flush()
        if log_path is not None:
            logger.warning(f"errors written to {log_path}")

    if args.inspect:
        _inspect(workbook)

    if args.load:
        try:
            _load(workbook, cfg, logger)
        except Exception as e:
            logger.error(f"database load failed: {e}")
            return EXIT_FATAL

    stats = collect_stats(workbook, start, datetime.now(UTC))
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(stats).removeprefix("SUMMARY "))

    if stats.failed_sheets > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
