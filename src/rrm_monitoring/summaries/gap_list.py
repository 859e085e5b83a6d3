from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

import pandas as pd
from loguru import logger

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.timelines import (
    ALERT_TIMELINE,
    RESPONSE_TIMELINE,
    ReportingWindow,
    TimelineColumns,
    add_timelines,
)
from rrm_monitoring.utils.dq_checks import require_columns

NATIONAL = "national"
GAP_LIST_PREFIX = "summary_gap_rrm_list_"


@dataclass(frozen=True)
class GapListColumns:
    uuid: str = "uuid"
    hh_number: str = "hh_number"
    ind_number: str = "ind_number"
    priority_needs: str = "priority_needs"
    admin1: str = "admin1"
    admin2: str = "admin2"


def compute_monthly_gap_list(
    df: pd.DataFrame,
    window: ReportingWindow,
    timeline_columns: TimelineColumns,
    columns: GapListColumns,
    regions: Iterable[str],
) -> Dict[str, pd.DataFrame]:
    """
    Lists of valid alerts of the window that got no response in the window.

    One list per entry of ``regions``, keyed ``summary_gap_rrm_list_<region>``;
    the "national" entry lists every region, the others filter on admin1.
    Each list is sorted by admin2.
    """
    regions = list(regions)
    if not regions:
        raise InvalidConfiguration("regions must contain at least one region (or 'national')")
    keep = [
        columns.uuid,
        columns.admin2,
        timeline_columns.incident_date,
        columns.hh_number,
        columns.ind_number,
        columns.priority_needs,
    ]
    require_columns(
        df,
        [timeline_columns.incident_date, timeline_columns.alert_status, timeline_columns.start_response_date]
        + keep
        + [columns.admin1],
        stage="compute_monthly_gap_list",
    )

    flagged = add_timelines(df, window, timeline_columns)
    not_treated = flagged[ALERT_TIMELINE].eq(1) & flagged[RESPONSE_TIMELINE].eq(0)
    unassisted = flagged.loc[not_treated]

    lists: Dict[str, pd.DataFrame] = {}
    for region in regions:
        subset = unassisted if region == NATIONAL else unassisted[unassisted[columns.admin1] == region]
        lists[f"{GAP_LIST_PREFIX}{region}"] = (
            subset[keep].sort_values(columns.admin2, kind="stable", na_position="last").reset_index(drop=True)
        )

    logger.info(f"[SUMMARY] Gap list {window.label()}: {int(not_treated.sum())} unassisted alert(s)")
    return lists
