from __future__ import annotations

import pandas as pd
from loguru import logger

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import to_counts, to_number


def validate_hhsize(hhsize) -> int:
    """Average household size must be a positive number; returned rounded."""
    try:
        value = float(hhsize)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"hhsize must be a positive number, got {hhsize!r}") from e
    if pd.isna(value):
        raise InvalidConfiguration("hhsize must be a positive number, got a missing value")
    size = int(round(value))
    if size <= 0:
        raise InvalidConfiguration(f"hhsize must be a positive number, got {hhsize!r}")
    return size


def clean_hh_number(df: pd.DataFrame, hh_number: str, ind_number: str, hhsize) -> pd.DataFrame:
    """
    Make household and individual counts consistent using the average
    household size (from the latest multi-sector needs assessment).

    Rules, in order:
    - hh missing, ind present  -> hh = round(ind / hhsize)
    - ind missing, hh present  -> ind = round(hh * hhsize)
    - hh > ind                 -> hh = round(ind / hhsize)

    Rows where both counts are missing are left missing. Counts come back as
    nullable Int64.
    """
    size = validate_hhsize(hhsize)
    require_columns(df, [hh_number, ind_number], stage="clean_hh_number")

    out = df.copy()
    hh = to_counts(out[hh_number])
    ind = to_counts(out[ind_number])

    from_ind = to_counts(to_number(ind) / size)

    fill_hh = hh.isna() & ind.notna()
    hh = hh.mask(fill_hh, from_ind)

    fill_ind = ind.isna() & hh.notna()
    ind = ind.mask(fill_ind, hh * size)

    too_high = (hh > ind).fillna(False).astype(bool)
    hh = hh.mask(too_high, to_counts(to_number(ind) / size))

    logger.debug(
        f"[CLEAN] hh/ind: {int(fill_hh.sum())} hh imputed, {int(fill_ind.sum())} ind imputed, "
        f"{int(too_high.sum())} hh > ind corrected (hhsize={size})"
    )

    out[hh_number] = hh
    out[ind_number] = ind
    return out
