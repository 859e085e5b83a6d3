"""
Date cleaning for RRM / post-RRM datasets.

- ``parse_dates``: convert text or spreadsheet-serial columns to dates.
- ``clean_dates``: replace outlier start/end gaps with the batch median and
  impute missing start dates from the end date.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import pandas as pd
from loguru import logger

from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import add_days, days_between, to_number

# Spreadsheet serial dates count days from this origin
EXCEL_ORIGIN = "1899-12-30"


@dataclass(frozen=True)
class GapBounds:
    q1: float
    q3: float
    lower: float
    upper: float
    median: Optional[int]


def parse_dates(
    df: pd.DataFrame,
    columns: Iterable[str],
    date_format: Optional[str] = None,
    origin: str = EXCEL_ORIGIN,
) -> pd.DataFrame:
    """
    Convert the given columns to normalised dates.

    Numeric columns are read as day offsets from ``origin``; anything else is
    parsed with ``date_format`` (pandas inference when None). Unparseable
    values become NaT.
    """
    columns = list(columns)
    require_columns(df, columns, stage="parse_dates")

    out = df.copy()
    for col in columns:
        values = out[col]
        if pd.api.types.is_datetime64_any_dtype(values):
            parsed = values
        elif pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
            parsed = pd.to_datetime(to_number(values), unit="D", origin=origin, errors="coerce")
        else:
            parsed = pd.to_datetime(values, format=date_format, errors="coerce")
        if getattr(parsed.dt, "tz", None) is not None:
            parsed = parsed.dt.tz_localize(None)
        parsed = parsed.dt.normalize()

        lost = int((values.notna() & parsed.isna()).sum())
        if lost:
            logger.warning(f"[CLEAN] {col}: {lost} value(s) could not be parsed as dates")
        out[col] = parsed
    return out


def gap_bounds(gaps: pd.Series) -> Optional[GapBounds]:
    """IQR fences and median over the non-missing gaps, or None if there are none."""
    gaps = to_number(gaps).dropna()
    if gaps.empty:
        return None
    q1 = float(gaps.quantile(0.25))
    q3 = float(gaps.quantile(0.75))
    iqr = q3 - q1
    return GapBounds(
        q1=q1,
        q3=q3,
        lower=q1 - 1.5 * iqr,
        upper=q3 + 1.5 * iqr,
        median=int(round(float(gaps.median()))),
    )


def clean_dates(df: pd.DataFrame, start_date: str, end_date: str) -> pd.DataFrame:
    """
    Clean a start/end date pair.

    The gap (end - start, in days) is checked against the batch IQR fences;
    negative or outlying gaps are replaced with the batch median gap and the
    end date is rebuilt from the start date. When only the end date is known,
    the start date is set to end - median gap. Statistics are recomputed on
    every call.
    """
    require_columns(df, [start_date, end_date], stage="clean_dates")

    out = df.copy()
    start = pd.to_datetime(out[start_date], errors="coerce")
    end = pd.to_datetime(out[end_date], errors="coerce")

    days_gap = days_between(end, start)
    bounds = gap_bounds(days_gap)
    if bounds is None:
        logger.debug(f"[CLEAN] {start_date}/{end_date}: no complete date pairs, nothing to clean")
        return out

    numeric_gap = to_number(days_gap)
    outlier = (numeric_gap < 0) | (numeric_gap < bounds.lower) | (numeric_gap > bounds.upper)
    days_gap = days_gap.mask(outlier, bounds.median)
    if outlier.any():
        logger.warning(
            f"[CLEAN] {start_date}/{end_date}: {int(outlier.sum())} gap(s) outside "
            f"[{bounds.lower:g}, {bounds.upper:g}] replaced by median {bounds.median}"
        )

    both = start.notna() & end.notna()
    end = end.mask(both, add_days(start, days_gap))

    # second median is taken over the corrected gaps
    corrected = gap_bounds(days_gap)
    only_end = end.notna() & start.isna()
    start = start.mask(only_end, add_days(end, -corrected.median))

    out[start_date] = start
    out[end_date] = end
    return out
