from __future__ import annotations

from typing import Dict, Sequence

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
from rrm_monitoring.utils.nullable import safe_percent, to_number

SECTOR_GAP_COLUMNS = [
    "sector_in_need",
    "response_need_covered",
    "response_need_notcovered",
    "response_need_notcovered_percent",
]


def validate_sector_mapping(sector_mapping: Dict[str, Sequence[str]]) -> Dict[str, tuple]:
    """sector label -> (need column, response column)."""
    if not isinstance(sector_mapping, dict) or not sector_mapping:
        raise InvalidConfiguration("sector_mapping must be a non-empty mapping of sector -> (need_col, response_col)")
    checked = {}
    for sector, cols in sector_mapping.items():
        if isinstance(cols, str) or len(cols) != 2:
            raise InvalidConfiguration(f"sector_mapping[{sector!r}] must be a (need_col, response_col) pair")
        checked[sector] = tuple(cols)
    return checked


def compute_monthly_summary_sector_gaps(
    df: pd.DataFrame,
    window: ReportingWindow,
    columns: TimelineColumns,
    sector_mapping: Dict[str, Sequence[str]],
) -> pd.DataFrame:
    """
    Per sector, individuals whose expressed need was covered or not by a
    response started in the window (alerts of the window only).

    ``columns.alert_ind_number`` is the number of individuals in need and
    ``columns.response_ind_number`` the number assisted. The percentage is
    missing when a sector has neither covered nor uncovered need.
    """
    mapping = validate_sector_mapping(sector_mapping)
    needed = columns.required + [c for pair in mapping.values() for c in pair]
    require_columns(df, needed, stage="compute_monthly_summary_sector_gaps")

    flagged = add_timelines(df, window, columns)
    in_scope = flagged[ALERT_TIMELINE] * flagged[RESPONSE_TIMELINE]
    ind_in_need = to_number(flagged[columns.alert_ind_number])
    ind_assisted = to_number(flagged[columns.response_ind_number])

    rows = []
    for sector, (need_col, response_col) in mapping.items():
        need = to_number(flagged[need_col])
        response = to_number(flagged[response_col])
        covered = ((need == 1) & (response == 1)).astype(int)
        # a missing response counts as not covered
        notcovered = ((need == 1) & (response != 1)).astype(int)

        rows.append(
            {
                "sector_in_need": sector,
                "response_need_covered": (in_scope * covered * ind_assisted).sum(skipna=True),
                "response_need_notcovered": (in_scope * notcovered * ind_in_need).sum(skipna=True),
            }
        )

    summary = pd.DataFrame(rows, columns=SECTOR_GAP_COLUMNS[:3])
    summary["response_need_notcovered_percent"] = safe_percent(
        summary["response_need_notcovered"],
        summary["response_need_notcovered"] + summary["response_need_covered"],
    )
    logger.info(f"[SUMMARY] Sector gaps {window.label()}: {len(summary)} sector(s)")
    return summary[SECTOR_GAP_COLUMNS]
