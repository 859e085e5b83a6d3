from __future__ import annotations

import pandas as pd
from loguru import logger

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.timelines import (
    ALERT_TIMELINE,
    RESPONSE_TIMELINE,
    ReportingWindow,
    TimelineColumns,
    add_timelines,
    not_flag,
)
from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import safe_percent, to_number

ADMIN_LEVELS = ("national", "admin1")


def compute_monthly_spatial_summary_gaps(
    df: pd.DataFrame,
    window: ReportingWindow,
    columns: TimelineColumns,
    admin1: str = "admin1",
    admin2: str = "admin2",
    admin_desag: str = "national",
) -> pd.DataFrame:
    """
    Individuals assisted / not assisted in the window, by area.

    admin_desag="national" gives one row per admin1 (country view),
    admin_desag="admin1" one row per admin1/admin2 pair (region view).
    The not-assisted percentage is missing where nobody was counted.
    """
    if admin_desag not in ADMIN_LEVELS:
        raise InvalidConfiguration(
            f"admin_desag must be one of {', '.join(ADMIN_LEVELS)}, got {admin_desag!r}"
        )
    group_cols = [admin1] if admin_desag == "national" else [admin1, admin2]
    require_columns(df, columns.required + group_cols, stage="compute_monthly_spatial_summary_gaps")

    flagged = add_timelines(df, window, columns)
    alert = flagged[ALERT_TIMELINE]
    response = flagged[RESPONSE_TIMELINE]

    terms = flagged[group_cols].copy()
    terms["response_ind_assisted"] = alert * response * to_number(flagged[columns.response_ind_number])
    terms["response_ind_notassisted"] = alert * not_flag(response) * to_number(flagged[columns.alert_ind_number])

    summary = terms.groupby(group_cols, dropna=False, sort=True).sum(min_count=0).reset_index()
    summary["response_ind_notassisted_percent"] = safe_percent(
        summary["response_ind_notassisted"],
        summary["response_ind_assisted"] + summary["response_ind_notassisted"],
    )

    logger.info(f"[SUMMARY] Spatial gaps {window.label()} ({admin_desag}): {len(summary)} area(s)")
    return summary
