"""
Post-RRM positioning indicators ("model one").

Each alert is classified independently against the reporting window
(P1 = prev_period_date, P2 = current_period_date) and its forecast
post-RRM date:

    A  validated on/before P1, not registered by post-RRM actors as of P1,
       forecast after the threshold
    B  validated in (P1, P2]
    C  forecast after the threshold, validated on/before P2, post-RRM start
       in (P1, P2]
    D  validated before P2, not registered as of P2, forecast after the
       threshold

Every category is split by where the forecast date falls:

    1  forecast <= P1
    2  P1 < forecast <= P2
    3  forecast > P2
    4  1 or 2     5  2 or 3     6  1 or 3

Final indicators:

    forecast  D3 and not C3  (positioning due after the window, not yet done)
    arrears   A4 and not C4  (positioning overdue, still not done)

Comparisons with a missing date are false, so every indicator is 0/1.
"""
from __future__ import annotations

from dataclasses import dataclass

import pandas as pd
from loguru import logger

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.timelines import ReportingWindow, to_timestamp
from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import as_indicator, equals_value, to_dates

DEFAULT_POSTRRM_START_THRESHOLD = pd.Timestamp("2023-01-01")

CATEGORIES = ("A", "B", "C", "D")
INDICATORS = ("forecast", "arrears")


@dataclass(frozen=True)
class PositioningColumns:
    alert_status: str = "alert_status"
    valid_status: str = "Validated"
    validation_date: str = "validation_date"
    postrrm_start_date: str = "postrrm_start_date"
    prev_postrrm_date: str = "prev_postrrm_date"


def add_time_buckets(df: pd.DataFrame, letter: str, window: ReportingWindow, forecast: pd.Series) -> pd.DataFrame:
    """Split category ``letter`` into sub-buckets 1-6 by the forecast date."""
    if letter not in df.columns:
        raise InvalidConfiguration(f"Category column {letter!r} must be computed before its time buckets")

    in_category = df[letter].eq(1)
    p1, p2 = window.prev_period_date, window.current_period_date

    df[f"{letter}1"] = as_indicator(in_category & (forecast <= p1))
    df[f"{letter}2"] = as_indicator(in_category & (forecast > p1) & (forecast <= p2))
    df[f"{letter}3"] = as_indicator(in_category & (forecast > p2))
    df[f"{letter}4"] = df[f"{letter}1"] | df[f"{letter}2"]
    df[f"{letter}5"] = df[f"{letter}2"] | df[f"{letter}3"]
    df[f"{letter}6"] = df[f"{letter}1"] | df[f"{letter}3"]
    return df


def add_postrrm_positioning_indicators(
    df: pd.DataFrame,
    window: ReportingWindow,
    columns: PositioningColumns = PositioningColumns(),
    threshold=DEFAULT_POSTRRM_START_THRESHOLD,
) -> pd.DataFrame:
    """Add the A-D categories, their time buckets and the forecast/arrears indicators."""
    c = columns
    threshold = to_timestamp(threshold, "postrrm_start_threshold")
    require_columns(
        df,
        [c.alert_status, c.validation_date, c.postrrm_start_date, c.prev_postrrm_date],
        stage="add_postrrm_positioning_indicators",
    )

    out = df.copy()
    p1, p2 = window.prev_period_date, window.current_period_date

    validated_on = to_dates(out[c.validation_date])
    postrrm_start = to_dates(out[c.postrrm_start_date])
    forecast = to_dates(out[c.prev_postrrm_date])

    out["validation"] = equals_value(out[c.alert_status], c.valid_status)
    out["postrrm_registered"] = as_indicator(postrrm_start.notna())

    valid = out["validation"].eq(1)
    not_registered = out["postrrm_registered"].eq(0)
    forecast_eligible = forecast > threshold

    out["Aextra"] = as_indicator(valid & (not_registered | (postrrm_start > p1)) & (validated_on <= p1))
    out["A"] = as_indicator(out["Aextra"].eq(1) & forecast_eligible)

    out["B"] = as_indicator(valid & (validated_on > p1) & (validated_on <= p2))

    out["C"] = as_indicator(
        valid & forecast_eligible & (validated_on <= p2) & (postrrm_start > p1) & (postrrm_start <= p2)
    )

    out["Dextra"] = as_indicator(valid & (validated_on < p2) & (not_registered | (postrrm_start > p2)))
    out["D"] = as_indicator(out["Dextra"].eq(1) & forecast_eligible)

    for letter in CATEGORIES:
        add_time_buckets(out, letter, window, forecast)

    out["forecast"] = as_indicator(out["D3"].eq(1) & out["C3"].eq(0))
    out["arrears"] = as_indicator(out["A4"].eq(1) & out["C4"].eq(0))

    logger.info(
        f"[CLASSIFY] {window.label()}: forecast={int(out['forecast'].sum())}, "
        f"arrears={int(out['arrears'].sum())} (threshold={threshold.date()})"
    )
    return out
