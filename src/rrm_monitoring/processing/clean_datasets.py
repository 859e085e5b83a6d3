from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd
from loguru import logger

from rrm_monitoring.processing.clean_dates import EXCEL_ORIGIN, clean_dates, parse_dates
from rrm_monitoring.processing.clean_household import clean_hh_number, validate_hhsize
from rrm_monitoring.utils.dq_checks import require_columns


@dataclass(frozen=True)
class HouseholdDateColumns:
    hh_number: str
    ind_number: str
    start_date: str
    end_date: str


def clean_rrm_dataset(
    df: pd.DataFrame,
    columns: HouseholdDateColumns,
    hhsize,
    date_format: Optional[str] = None,
    origin: str = EXCEL_ORIGIN,
) -> pd.DataFrame:
    """
    Full cleaning pass on a raw RRM or post-RRM response table:
    parse the start/end dates, reconcile household/individual counts, then
    clean the start/end gap.
    """
    validate_hhsize(hhsize)
    require_columns(df, columns, stage="clean_rrm_dataset")

    out = parse_dates(df, [columns.start_date, columns.end_date], date_format=date_format, origin=origin)
    out = clean_hh_number(out, columns.hh_number, columns.ind_number, hhsize)
    out = clean_dates(out, columns.start_date, columns.end_date)

    logger.info(f"[CLEAN] Response table cleaned (rows={len(out)})")
    return out
