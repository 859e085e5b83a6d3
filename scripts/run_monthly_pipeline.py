#!/usr/bin/env python
"""
scripts/run_monthly_pipeline.py - Monthly RRM monitoring run

Usage:
    python scripts/run_monthly_pipeline.py --prev-period 2024-03-01 --current-period 2024-04-01
    python scripts/run_monthly_pipeline.py --prev-period 2024-03-01 --current-period 2024-04-01 --dry-run
    python scripts/run_monthly_pipeline.py --prev-period 2024-03-01 --current-period 2024-04-01 --db data/rrm.duckdb

Steps:
1. Load settings (config/settings.yaml) and input tables (CSV / parquet)
2. Run cleaning, aggregation, join, positioning and summaries
3. Write every output table to DuckDB, tagged with the period
4. Record the run in ops_pipeline_runs

Exit codes: 0 success, 1 pipeline failure, 2 configuration error.
"""
from __future__ import annotations

import argparse
import os
import sys

from dotenv import load_dotenv
from loguru import logger

from rrm_monitoring.db.indicator_store import connect, write_indicator_tables
from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.timelines import ReportingWindow
from rrm_monitoring.ops.runs import end_run, make_run_id, start_run
from rrm_monitoring.pipeline.monthly_pipeline import load_inputs, run_monthly_pipeline, settings_from_config
from rrm_monitoring.utils.config import PROJECT_ROOT, load_config

JOB_NAME = "rrm_monthly"
DEFAULT_DB_PATH = "data/rrm_monitoring.duckdb"
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def resolve_db_path(cli_value: str | None, cfg: dict) -> str:
    """--db, then RRM_DUCKDB_PATH, then settings duckdb_path."""
    path = cli_value or os.getenv("RRM_DUCKDB_PATH") or cfg.get("duckdb_path") or DEFAULT_DB_PATH
    if path != ":memory:" and not os.path.isabs(path):
        path = str(PROJECT_ROOT / path)
    return path


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="RRM monthly monitoring pipeline")
    parser.add_argument("--prev-period", required=True, help="Window start, inclusive (YYYY-MM-DD)")
    parser.add_argument("--current-period", required=True, help="Window end, exclusive (YYYY-MM-DD)")
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Settings file (default: config/settings.yaml)",
    )
    parser.add_argument("--db", help="DuckDB path (default: RRM_DUCKDB_PATH or settings duckdb_path)")
    parser.add_argument("--dry-run", action="store_true", help="Compute everything, write nothing")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    load_dotenv()

    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level="INFO",
    )

    # =========================================================================
    # STEP 1: SETTINGS + INPUTS
    # =========================================================================
    try:
        cfg = load_config(args.config)
        settings = settings_from_config(cfg)
        window = ReportingWindow(args.prev_period, args.current_period)
        inputs = load_inputs(cfg)
    except InvalidConfiguration as ex:
        logger.error(f"[JOB] Configuration error: {ex}")
        return EXIT_CONFIG_ERROR

    logger.info(f"[JOB] Window: {window.prev_period_date.date()} -> {window.current_period_date.date()}")

    if args.dry_run:
        try:
            result = run_monthly_pipeline(inputs, window, settings)
        except InvalidConfiguration as ex:
            logger.error(f"[JOB] Configuration error: {ex}")
            return EXIT_CONFIG_ERROR
        except Exception as ex:
            logger.error(f"[JOB] Pipeline failed: {ex}")
            return EXIT_FAILURE
        for name, df in result.tables().items():
            logger.info(f"[JOB] (dry-run) {name}: {len(df)} row(s)")
        return 0

    # =========================================================================
    # STEP 2: RUN + PERSIST
    # =========================================================================
    db_path = resolve_db_path(args.db, cfg)
    run_id = make_run_id(JOB_NAME)
    con = connect(db_path)
    try:
        start_run(
            con,
            run_id,
            JOB_NAME,
            period_start=window.prev_period_date.date(),
            period_end=window.current_period_date.date(),
            params={"config": args.config, "db": db_path, "hhsize": settings.hhsize},
        )
        try:
            result = run_monthly_pipeline(inputs, window, settings)
            written = write_indicator_tables(con, result.tables(), window)
        except InvalidConfiguration as ex:
            logger.error(f"[JOB] Configuration error: {ex}")
            end_run(con, run_id, "FAILED", EXIT_CONFIG_ERROR, error_message=str(ex))
            return EXIT_CONFIG_ERROR
        except Exception as ex:
            logger.error(f"[JOB] Pipeline failed: {ex}")
            end_run(con, run_id, "FAILED", EXIT_FAILURE, error_message=str(ex))
            return EXIT_FAILURE

        end_run(con, run_id, "OK", 0, metrics=result.metrics())
        logger.success(f"[JOB] run_id={run_id}: {len(written)} table(s) written to {db_path}")
        return 0
    finally:
        con.close()


if __name__ == "__main__":
    sys.exit(main())
