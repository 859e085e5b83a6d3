"""
Null-propagating helpers shared by every stage.

Missing values are a normal state of the data: any arithmetic with a missing
operand gives a missing result, and any comparison with a missing operand is
false. These helpers pin the dtypes used across the pipeline:

    counts        -> pandas nullable Int64
    dates         -> datetime64[ns], normalised to midnight, NaT when missing
    elapsed days  -> Int64
    indicators    -> int 0/1
"""
from __future__ import annotations

from typing import Union

import numpy as np
import pandas as pd

DaysLike = Union[int, float, pd.Series]


def to_dates(values) -> pd.Series:
    """Coerce to normalised datetimes; anything unparseable becomes NaT."""
    return pd.to_datetime(pd.Series(values), errors="coerce").dt.normalize()


def to_counts(values) -> pd.Series:
    """Coerce to rounded nullable integers."""
    return to_number(values).round().astype("Int64")


def to_number(values) -> pd.Series:
    return pd.to_numeric(pd.Series(values), errors="coerce").astype("float64")


def to_flag(values) -> pd.Series:
    """0/1 flag: 1 if the value is a positive number, missing counts as 0."""
    numbers = pd.to_numeric(pd.Series(values), errors="coerce").astype("float64")
    return numbers.fillna(0).gt(0).astype(int)


def as_indicator(mask: pd.Series) -> pd.Series:
    """Turn a (possibly NA-bearing) boolean mask into a 0/1 int column."""
    return mask.astype("boolean").fillna(False).astype(int)


def equals_value(values: pd.Series, value) -> pd.Series:
    return as_indicator(values.eq(value))


def days_between(later, earlier) -> pd.Series:
    """Whole days from ``earlier`` to ``later``; missing if either is missing."""
    delta = to_dates(later) - to_dates(earlier)
    return delta.dt.days.astype("Int64")


def add_days(dates, days: DaysLike) -> pd.Series:
    """Shift dates by a day count; a missing date or day count gives NaT."""
    dates = to_dates(dates)
    if isinstance(days, pd.Series):
        offsets = pd.to_timedelta(to_number(days), unit="D")
    elif days is None or pd.isna(days):
        return pd.Series(pd.NaT, index=dates.index, dtype="datetime64[ns]")
    else:
        offsets = pd.Timedelta(days=int(days))
    return dates + offsets


def safe_percent(part, whole) -> pd.Series:
    """round(part / whole * 100), missing where ``whole`` is zero or missing."""
    part = to_number(part)
    whole = to_number(whole)
    ratio = part.div(whole.where(whole != 0, np.nan)) * 100
    return ratio.round().astype("Int64")
