"""
Collapse raw response rows into one row per alert.

A single alert can receive several interventions (different actors, rounds
of distribution). Reporting works at alert level, so the raw rows are
grouped by the alert identifier with one reducer per column:

    response_number   rows in the group
    actor             distinct names, first-seen order, comma-joined
    sector flags      1 if any row is positive (missing counts as 0)
    hh / ind          max, ignoring missing
    start date        earliest
    end date          earliest start + longest (end - start)
    donor / admin1/2  first row of the group
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import add_days, days_between, to_counts, to_flag

RESPONSE_NUMBER = "response_number"

# sector key -> default raw column name
DEFAULT_SECTOR_COLUMNS: Dict[str, str] = {
    "food": "food_response",
    "wash": "wash_response",
    "nfi": "nfi_response",
    "shelter": "shelter_response",
    "health": "health_response",
    "protection": "protection_response",
    "mhm": "mhm_response",
    "enriched_flour": "enriched_flour_response",
    "education": "education_response",
    "livelihood": "livelihood_response",
}


@dataclass(frozen=True)
class ResponseColumns:
    uuid: str = "uuid"
    actor: str = "response_actor"
    hh_number: str = "hh_number"
    ind_number: str = "ind_number"
    start_date: str = "response_start_date"
    end_date: str = "response_end_date"
    donor: str = "response_donor"
    admin1: str = "admin1"
    admin2: str = "admin2"
    sectors: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SECTOR_COLUMNS))

    @property
    def sector_columns(self) -> List[str]:
        return list(self.sectors.values())

    @property
    def output_columns(self) -> List[str]:
        return [
            self.uuid,
            RESPONSE_NUMBER,
            self.actor,
            *self.sector_columns,
            self.hh_number,
            self.ind_number,
            self.start_date,
            self.end_date,
            self.donor,
            self.admin1,
            self.admin2,
        ]


def aggregate_dtypes(columns: ResponseColumns) -> Dict[str, str]:
    """Dtypes of the aggregated table, kept the same when there are no response rows."""
    dtypes = {col: "object" for col in columns.output_columns}
    dtypes[RESPONSE_NUMBER] = "int64"
    for col in columns.sector_columns:
        dtypes[col] = "int64"
    dtypes[columns.hh_number] = "Int64"
    dtypes[columns.ind_number] = "Int64"
    dtypes[columns.start_date] = "datetime64[ns]"
    dtypes[columns.end_date] = "datetime64[ns]"
    return dtypes


def join_distinct(values: pd.Series, sep: str = ",") -> Optional[str]:
    """Distinct non-missing values in first-seen order, or None if there are none."""
    names = [str(v).strip() for v in values if pd.notna(v) and str(v).strip()]
    if not names:
        return None
    return sep.join(dict.fromkeys(names))


def aggregate_responses(df: pd.DataFrame, columns: ResponseColumns = ResponseColumns()) -> pd.DataFrame:
    """
    One row per alert identifier, in order of first appearance.

    Groups whose counts are all missing keep a missing count; groups whose
    dates are all missing keep missing dates.
    """
    input_columns = [c for c in columns.output_columns if c != RESPONSE_NUMBER]
    require_columns(df, input_columns, stage="aggregate_responses")

    if df.empty:
        return pd.DataFrame({col: pd.Series(dtype=dtype) for col, dtype in aggregate_dtypes(columns).items()})

    work = pd.DataFrame(
        {
            columns.uuid: df[columns.uuid],
            columns.actor: df[columns.actor],
            columns.hh_number: to_counts(df[columns.hh_number]),
            columns.ind_number: to_counts(df[columns.ind_number]),
            columns.start_date: pd.to_datetime(df[columns.start_date], errors="coerce"),
            "_gap": days_between(df[columns.end_date], df[columns.start_date]),
        },
        index=df.index,
    )
    for col in columns.sector_columns:
        work[col] = to_flag(df[col])

    grouped = work.groupby(columns.uuid, sort=False, dropna=False)

    result = pd.DataFrame({RESPONSE_NUMBER: grouped.size()})
    result[columns.actor] = grouped[columns.actor].agg(join_distinct)
    for col in columns.sector_columns:
        result[col] = grouped[col].max().astype(int)
    result[columns.hh_number] = grouped[columns.hh_number].max()
    result[columns.ind_number] = grouped[columns.ind_number].max()
    result[columns.start_date] = grouped[columns.start_date].min()
    gap = grouped["_gap"].max()
    result[columns.end_date] = add_days(result[columns.start_date], gap)

    firsts = (
        df.drop_duplicates(subset=columns.uuid, keep="first")
        .set_index(columns.uuid)[[columns.donor, columns.admin1, columns.admin2]]
    )
    result = result.join(firsts)
    result = result.rename_axis(columns.uuid).reset_index()

    for col in (columns.hh_number, columns.ind_number):
        result[col] = result[col].astype("Int64")
    result[RESPONSE_NUMBER] = result[RESPONSE_NUMBER].astype(int)

    empty_counts = int(result[columns.ind_number].isna().sum())
    if empty_counts:
        logger.warning(f"[AGG] {empty_counts} alert(s) with no individual count in any response row")

    logger.info(f"[AGG] {len(df)} response rows -> {len(result)} alerts")
    return result[columns.output_columns]
