"""
Reporting window and the timeline predicates shared by the monthly
summaries.

All period membership is half-open: an event dated exactly on
``prev_period_date`` is inside the window, one dated on
``current_period_date`` is outside.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import as_indicator, equals_value, to_dates

ALERT_TIMELINE = "alert_timeline"
ALERT_BEFORE = "alert_before"
RESPONSE_TIMELINE = "response_timeline"


def to_timestamp(value, name: str) -> pd.Timestamp:
    ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        raise InvalidConfiguration(f"{name} must be a date, got {value!r}")
    return pd.Timestamp(ts).normalize()


@dataclass(frozen=True)
class ReportingWindow:
    prev_period_date: pd.Timestamp
    current_period_date: pd.Timestamp

    def __post_init__(self):
        prev = to_timestamp(self.prev_period_date, "prev_period_date")
        current = to_timestamp(self.current_period_date, "current_period_date")
        if prev >= current:
            raise InvalidConfiguration(
                f"prev_period_date ({prev.date()}) must be before current_period_date ({current.date()})"
            )
        object.__setattr__(self, "prev_period_date", prev)
        object.__setattr__(self, "current_period_date", current)

    def contains(self, dates) -> pd.Series:
        """1 where prev <= date < current, 0 otherwise (missing dates included)."""
        d = to_dates(dates)
        return as_indicator((d >= self.prev_period_date) & (d < self.current_period_date))

    def before(self, dates) -> pd.Series:
        d = to_dates(dates)
        return as_indicator(d < self.prev_period_date)

    def label(self) -> str:
        return f"{self.prev_period_date.date()}_{self.current_period_date.date()}"


@dataclass(frozen=True)
class TimelineColumns:
    incident_date: str = "incident_date"
    alert_status: str = "alert_status"
    valid_status: str = "Validated"
    start_response_date: str = "rrm_start_date"
    alert_ind_number: str = "ind_number"
    response_ind_number: str = "rrm_ind_number"

    @property
    def required(self) -> List[str]:
        return [
            self.incident_date,
            self.alert_status,
            self.start_response_date,
            self.alert_ind_number,
            self.response_ind_number,
        ]


def add_timelines(
    df: pd.DataFrame,
    window: ReportingWindow,
    columns: TimelineColumns,
    stage: Optional[str] = None,
) -> pd.DataFrame:
    """
    Add the alert_timeline, alert_before and response_timeline flags:

    - alert_timeline: valid alert whose incident falls in the window
    - alert_before: valid alert whose incident is before the window
    - response_timeline: response started in the window
    """
    require_columns(df, [columns.incident_date, columns.alert_status, columns.start_response_date], stage=stage)

    out = df.copy()
    valid = equals_value(out[columns.alert_status], columns.valid_status)
    out[ALERT_TIMELINE] = window.contains(out[columns.incident_date]) * valid
    out[ALERT_BEFORE] = window.before(out[columns.incident_date]) * valid
    out[RESPONSE_TIMELINE] = window.contains(out[columns.start_response_date])
    return out


def not_flag(flag: pd.Series) -> pd.Series:
    return 1 - flag
