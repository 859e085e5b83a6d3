from __future__ import annotations

from typing import Optional

import pandas as pd
from loguru import logger

from rrm_monitoring.indicators.timelines import (
    ALERT_BEFORE,
    ALERT_TIMELINE,
    RESPONSE_TIMELINE,
    ReportingWindow,
    TimelineColumns,
    add_timelines,
    not_flag,
)
from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import to_number

KEY_GAP_COLUMNS = [
    "validated_alerts",
    "treated_alerts",
    "response_ind_assisted",
    "non_treated_alerts",
    "response_ind_notassisted",
    "treated_alerts_before_prev_date",
    "response_ind_assisted_before_prev_date",
    "displaced_ind_number",
]


def _key_gap_terms(df: pd.DataFrame, columns: TimelineColumns) -> pd.DataFrame:
    """Per-row terms; the summary is their (missing-skipping) sum."""
    alert = df[ALERT_TIMELINE]
    before = df[ALERT_BEFORE]
    response = df[RESPONSE_TIMELINE]
    no_response = not_flag(response)
    alert_ind = to_number(df[columns.alert_ind_number])
    response_ind = to_number(df[columns.response_ind_number])

    return pd.DataFrame(
        {
            "validated_alerts": alert,
            "treated_alerts": alert * response,
            "response_ind_assisted": alert * response * response_ind,
            "non_treated_alerts": alert * no_response,
            "response_ind_notassisted": alert * no_response * alert_ind,
            "treated_alerts_before_prev_date": before * response,
            "response_ind_assisted_before_prev_date": before * response * response_ind,
        },
        index=df.index,
    )


def compute_monthly_key_summary_gaps(
    df: pd.DataFrame,
    window: ReportingWindow,
    columns: TimelineColumns = TimelineColumns(),
    desag_by: Optional[str] = None,
) -> pd.DataFrame:
    """
    Headline gap figures for the window: validated alerts, alerts treated or
    not within the window, individuals assisted / not assisted, responses to
    alerts from before the window and the total displaced population
    (assisted + not assisted).

    With ``desag_by`` the figures are broken down by that column.
    """
    require_columns(df, columns.required + ([desag_by] if desag_by else []), stage="compute_monthly_key_summary_gaps")

    flagged = add_timelines(df, window, columns)
    terms = _key_gap_terms(flagged, columns)

    if desag_by:
        terms[desag_by] = flagged[desag_by]
        summary = terms.groupby(desag_by, dropna=False, sort=True).sum(min_count=0).reset_index()
    else:
        summary = terms.sum(min_count=0).to_frame().T

    summary["displaced_ind_number"] = summary["response_ind_assisted"] + summary["response_ind_notassisted"]
    for col in ("validated_alerts", "treated_alerts", "non_treated_alerts", "treated_alerts_before_prev_date"):
        summary[col] = summary[col].astype(int)

    logger.info(f"[SUMMARY] Key gaps {window.label()}: {len(summary)} row(s)")
    return summary[([desag_by] if desag_by else []) + KEY_GAP_COLUMNS]
