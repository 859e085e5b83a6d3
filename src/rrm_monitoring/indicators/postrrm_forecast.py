from __future__ import annotations

from dataclasses import dataclass

import pandas as pd
from loguru import logger

from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import add_days, to_dates, to_number

PREV_POSTRRM_DATE = "prev_postrrm_date"
POSTRRM_OFFSET_DAYS = 90


@dataclass(frozen=True)
class ForecastColumns:
    rrm_started: str = "has_rrm_response"
    rrm_start_date: str = "rrm_start_date"
    alert_status: str = "alert_status"
    valid_status: str = "Validated"
    incident_date: str = "incident_date"
    time_alert_to_rrm: str = "time_alert_to_rrm"


def add_prev_postrrm_date(
    df: pd.DataFrame,
    columns: ForecastColumns = ForecastColumns(),
    offset_days: int = POSTRRM_OFFSET_DAYS,
) -> pd.DataFrame:
    """
    Add ``prev_postrrm_date``, the date by which post-RRM actors are expected
    to position on an alert:

    - RRM started: RRM start date + offset
    - otherwise, validated alert: incident date + median alert-to-RRM time
      over the whole table (truncated to whole days) + offset
    - otherwise missing
    """
    c = columns
    require_columns(
        df,
        [c.rrm_started, c.rrm_start_date, c.alert_status, c.incident_date, c.time_alert_to_rrm],
        stage="add_prev_postrrm_date",
    )

    out = df.copy()
    median = to_number(out[c.time_alert_to_rrm]).median(skipna=True)
    median_days = None if pd.isna(median) else int(median)
    if median_days is None:
        logger.warning("[CLASSIFY] No alert-to-RRM times available, validated alerts without RRM get no forecast")

    started = to_number(out[c.rrm_started]).eq(1)
    validated = out[c.alert_status].eq(c.valid_status).fillna(False).astype(bool)

    from_rrm = add_days(out[c.rrm_start_date], offset_days)
    if median_days is None:
        from_incident = pd.Series(pd.NaT, index=out.index, dtype="datetime64[ns]")
    else:
        from_incident = add_days(out[c.incident_date], median_days + offset_days)

    forecast = from_incident.where(validated, pd.NaT)
    out[PREV_POSTRRM_DATE] = to_dates(from_rrm.where(started, forecast))
    return out
