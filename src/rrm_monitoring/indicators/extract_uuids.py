from __future__ import annotations

from typing import Dict, Iterable

import pandas as pd
from loguru import logger

from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import to_number


def extract_uuid_by_indicator(
    df: pd.DataFrame,
    uuid_col: str,
    date_col: str,
    indicators: Iterable[str],
) -> Dict[str, pd.DataFrame]:
    """
    For each indicator column, the (uuid, date) rows where it equals 1.

    Indicators that are not columns of ``df`` are skipped.
    """
    require_columns(df, [uuid_col, date_col], stage="extract_uuid_by_indicator")

    result: Dict[str, pd.DataFrame] = {}
    for ind in indicators:
        if ind not in df.columns:
            logger.debug(f"[CLASSIFY] Indicator {ind!r} not in table, skipped")
            continue
        hit = to_number(df[ind]).eq(1)
        result[ind] = df.loc[hit, [uuid_col, date_col]].reset_index(drop=True)
    return result
