from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import duckdb

OPS_RUNS_DDL = """
CREATE TABLE IF NOT EXISTS ops_pipeline_runs (
    run_id VARCHAR,
    job_name VARCHAR,
    period_start DATE,
    period_end DATE,
    started_at TIMESTAMP,
    ended_at TIMESTAMP,
    status VARCHAR,
    params_json VARCHAR,
    alerts_rows BIGINT,
    rrm_rows BIGINT,
    postrrm_rows BIGINT,
    joined_rows BIGINT,
    forecast_alerts BIGINT,
    arrears_alerts BIGINT,
    exit_code INTEGER,
    error_message VARCHAR
);
"""

METRIC_COLUMNS = (
    "alerts_rows",
    "rrm_rows",
    "postrrm_rows",
    "joined_rows",
    "forecast_alerts",
    "arrears_alerts",
)


def utcnow_naive() -> datetime:
    # DuckDB TIMESTAMP is naive: store UTC without tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_run_id(job_name: str = "monthly") -> str:
    return f"{job_name}_{utcnow_naive().strftime('%Y%m%d%H%M%S%f')}"


def ensure_ops_tables(con: duckdb.DuckDBPyConnection) -> None:
    con.execute(OPS_RUNS_DDL)


def start_run(
    con: duckdb.DuckDBPyConnection,
    run_id: str,
    job_name: str,
    period_start=None,
    period_end=None,
    params: Optional[Dict[str, Any]] = None,
) -> None:
    ensure_ops_tables(con)
    con.execute(
        """
        INSERT INTO ops_pipeline_runs (
          run_id, job_name, period_start, period_end, started_at, status, params_json
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            run_id,
            job_name,
            period_start,
            period_end,
            utcnow_naive(),
            "RUNNING",
            json.dumps(params or {}, ensure_ascii=False, default=str),
        ],
    )


def end_run(
    con: duckdb.DuckDBPyConnection,
    run_id: str,
    status: str,
    exit_code: int,
    metrics: Optional[Dict[str, Any]] = None,
    error_message: Optional[str] = None,
) -> None:
    metrics = metrics or {}
    ensure_ops_tables(con)
    con.execute(
        """
        UPDATE ops_pipeline_runs
        SET ended_at = ?,
            status = ?,
            exit_code = ?,
            error_message = ?,
            alerts_rows = COALESCE(?, alerts_rows),
            rrm_rows = COALESCE(?, rrm_rows),
            postrrm_rows = COALESCE(?, postrrm_rows),
            joined_rows = COALESCE(?, joined_rows),
            forecast_alerts = COALESCE(?, forecast_alerts),
            arrears_alerts = COALESCE(?, arrears_alerts)
        WHERE run_id = ?
        """,
        [
            utcnow_naive(),
            status,
            int(exit_code),
            error_message,
            *[metrics.get(k) for k in METRIC_COLUMNS],
            run_id,
        ],
    )
