from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Optional

import duckdb
import pandas as pd
from loguru import logger

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.timelines import ReportingWindow

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def connect(db_path: str | Path) -> duckdb.DuckDBPyConnection:
    """Open the DuckDB file, creating its folder if needed (":memory:" allowed)."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(db_path))


def table_name(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise InvalidConfiguration(f"Invalid table name: {name!r}")
    return name


def write_indicator_table(
    con: duckdb.DuckDBPyConnection,
    name: str,
    df: pd.DataFrame,
    window: Optional[ReportingWindow] = None,
) -> int:
    """
    Replace table ``name`` with the contents of ``df``.

    With a window, the rows are tagged with period_start / period_end.
    Returns the number of rows written.
    """
    name = table_name(name)
    frame = df.copy()
    if window is not None:
        frame["period_start"] = window.prev_period_date
        frame["period_end"] = window.current_period_date

    con.register("_indicator_frame", frame)
    try:
        con.execute(f"CREATE OR REPLACE TABLE {name} AS SELECT * FROM _indicator_frame")
    finally:
        con.unregister("_indicator_frame")

    logger.info(f"[DW] {name}: {len(frame)} row(s) written")
    return len(frame)


def write_indicator_tables(
    con: duckdb.DuckDBPyConnection,
    tables: Dict[str, pd.DataFrame],
    window: Optional[ReportingWindow] = None,
) -> Dict[str, int]:
    return {name: write_indicator_table(con, name, df, window) for name, df in tables.items()}


def read_table(con: duckdb.DuckDBPyConnection, name: str) -> pd.DataFrame:
    return con.execute(f"SELECT * FROM {table_name(name)}").fetchdf()
