from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import pandas as pd
from loguru import logger

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.timelines import ReportingWindow
from rrm_monitoring.processing.aggregate_responses import RESPONSE_NUMBER
from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import to_number


@dataclass(frozen=True)
class ResponseSummaryColumns:
    uuid: str = "uuid"
    start_response_date: str = "response_start_date"
    ind_number: str = "ind_number"
    response_number: str = RESPONSE_NUMBER


def uuids_started_in_window(
    raw_responses: pd.DataFrame,
    window: ReportingWindow,
    columns: ResponseSummaryColumns,
) -> pd.Index:
    """Alerts with at least one raw response row starting in the window."""
    require_columns(raw_responses, [columns.uuid, columns.start_response_date], stage="uuids_started_in_window")
    started = window.contains(raw_responses[columns.start_response_date]).eq(1)
    return pd.Index(raw_responses.loc[started, columns.uuid].unique())


def compute_monthly_response_summary(
    raw_responses: pd.DataFrame,
    aggregated: pd.DataFrame,
    window: ReportingWindow,
    columns: ResponseSummaryColumns = ResponseSummaryColumns(),
    desag_by: Optional[str] = None,
) -> pd.DataFrame:
    """
    Responses started in the window: number of responses, number of alerts
    with at least one response and people reached, optionally by ``desag_by``.
    """
    needed = [columns.uuid, columns.response_number, columns.ind_number] + ([desag_by] if desag_by else [])
    require_columns(aggregated, needed, stage="compute_monthly_response_summary")
    uuids = uuids_started_in_window(raw_responses, window, columns)

    selected = aggregated[aggregated[columns.uuid].isin(uuids)]
    terms = pd.DataFrame(
        {
            "response_started": to_number(selected[columns.response_number]),
            "alerts_with_at_least_oneresponse": 1,
            "people_reached": to_number(selected[columns.ind_number]),
        },
        index=selected.index,
    )

    if desag_by:
        terms[desag_by] = selected[desag_by]
        summary = terms.groupby(desag_by, dropna=False, sort=True).sum(min_count=0).reset_index()
    else:
        summary = terms.sum(min_count=0).to_frame().T

    summary["response_started"] = summary["response_started"].astype(int)
    summary["alerts_with_at_least_oneresponse"] = summary["alerts_with_at_least_oneresponse"].astype(int)

    logger.info(f"[SUMMARY] Responses {window.label()}: {len(selected)} alert(s) with a response started")
    return summary


def compute_monthly_response_sector(
    raw_responses: pd.DataFrame,
    aggregated: pd.DataFrame,
    window: ReportingWindow,
    sector_mapping: Dict[str, str],
    columns: ResponseSummaryColumns = ResponseSummaryColumns(),
) -> pd.DataFrame:
    """
    Per sector, number of alerts whose responses started in the window
    covered the sector and the individuals they reached.

    ``sector_mapping`` maps the sector label to its aggregated flag column.
    """
    if not isinstance(sector_mapping, dict) or not sector_mapping:
        raise InvalidConfiguration("sector_mapping must be a non-empty mapping of sector -> response column")
    require_columns(
        aggregated,
        [columns.uuid, columns.ind_number] + list(sector_mapping.values()),
        stage="compute_monthly_response_sector",
    )
    uuids = uuids_started_in_window(raw_responses, window, columns)
    selected = aggregated[aggregated[columns.uuid].isin(uuids)]
    ind = to_number(selected[columns.ind_number])

    rows = []
    for sector, response_col in sector_mapping.items():
        flag = to_number(selected[response_col])
        rows.append(
            {
                "sector": sector,
                "responses_count": int(flag.sum(skipna=True)),
                "individuals_assisted": (flag * ind).sum(skipna=True),
            }
        )
    return pd.DataFrame(rows, columns=["sector", "responses_count", "individuals_assisted"])
