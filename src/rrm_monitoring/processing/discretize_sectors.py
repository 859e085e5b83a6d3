from __future__ import annotations

import re
from typing import Dict

import pandas as pd

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.utils.dq_checks import require_columns


def discretize_multiple_choice_variables(
    df: pd.DataFrame,
    multi_choice_column: str,
    category_labels: Dict[str, str],
) -> pd.DataFrame:
    """
    Split a multiple-choice text column (e.g. "food nfi wash") into one count
    column per category.

    ``category_labels`` maps the new column name to the literal search term;
    each new column counts the occurrences of that term. Missing text gives
    a missing count.
    """
    if not isinstance(category_labels, dict) or not category_labels:
        raise InvalidConfiguration("category_labels must be a non-empty mapping of column name -> search term")
    bad = [k for k, v in category_labels.items() if not isinstance(k, str) or not isinstance(v, str) or not v]
    if bad:
        raise InvalidConfiguration(f"category_labels entries must be non-empty strings: {bad}")
    require_columns(df, [multi_choice_column], stage="discretize_multiple_choice_variables")

    out = df.copy()
    text = out[multi_choice_column].astype("string")
    for category, term in category_labels.items():
        out[category] = text.str.count(re.escape(term)).astype("Int64")
    return out
