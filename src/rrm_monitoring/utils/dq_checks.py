from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from rrm_monitoring.errors import MissingColumn


@dataclass
class DQResult:
    ok: bool
    checks: List[Dict[str, Any]]


def column_names(columns: Any) -> List[str]:
    """Column names referenced by a column-role dataclass (``None`` roles skipped)."""
    if not is_dataclass(columns):
        return [c for c in columns if c is not None]
    names: List[str] = []
    for f in fields(columns):
        value = getattr(columns, f.name)
        if value is None:
            continue
        if isinstance(value, dict):
            for v in value.values():
                names.extend(v if isinstance(v, (list, tuple)) else [v])
        elif isinstance(value, (list, tuple)):
            names.extend(value)
        else:
            names.append(value)
    return names


def require_columns(df: pd.DataFrame, columns: Any, stage: Optional[str] = None) -> None:
    """Fail fast with MissingColumn if any referenced column is absent."""
    missing = [c for c in dict.fromkeys(column_names(columns)) if c not in df.columns]
    if missing:
        raise MissingColumn(missing, stage=stage)


def check_min_rows(count: int, min_rows: int = 1) -> Dict[str, Any]:
    ok = count >= min_rows
    return {"check": "min_rows", "min_rows": min_rows, "value": count, "ok": ok}


def check_required_columns(df: pd.DataFrame, columns: Iterable[str], table: str) -> Dict[str, Any]:
    missing = [c for c in columns if c not in df.columns]
    return {"check": "required_columns", "table": table, "missing": missing, "ok": not missing}


def check_unique_key(df: pd.DataFrame, key: str, table: str) -> Dict[str, Any]:
    duplicated = int(df[key].duplicated().sum()) if key in df.columns else 0
    return {"check": "unique_key", "table": table, "key": key, "value": duplicated, "ok": duplicated == 0}


def summarize_results(checks: List[Dict[str, Any]]) -> DQResult:
    ok = all(c.get("ok", False) for c in checks)
    return DQResult(ok=ok, checks=checks)
