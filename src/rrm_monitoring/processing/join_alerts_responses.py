from __future__ import annotations

from dataclasses import dataclass

import pandas as pd
from loguru import logger

from rrm_monitoring.utils.dq_checks import require_columns
from rrm_monitoring.utils.nullable import days_between, to_flag

HAS_RRM = "has_rrm_response"
HAS_POSTRRM = "has_postrrm_response"

TIME_COLUMNS = (
    "time_alert_to_validation",
    "time_validation_to_rrm",
    "time_rrm_duration",
    "time_rrm_to_postrrm",
    "time_postrrm_duration",
    "time_alert_to_rrm",
    "time_alert_to_postrrm",
)


@dataclass(frozen=True)
class JoinColumns:
    uuid: str = "uuid"
    incident_date: str = "incident_date"
    validation_date: str = "validation_date"
    rrm_response_number: str = "rrm_response_number"
    rrm_start_date: str = "rrm_start_date"
    rrm_end_date: str = "rrm_end_date"
    postrrm_response_number: str = "postrrm_response_number"
    postrrm_start_date: str = "postrrm_start_date"
    postrrm_end_date: str = "postrrm_end_date"


def _left_join(left: pd.DataFrame, right: pd.DataFrame, key: str, suffix: str, name: str) -> pd.DataFrame:
    duplicated = int(right[key].duplicated().sum())
    if duplicated:
        logger.warning(f"[JOIN] {name}: {duplicated} duplicated '{key}' value(s), alerts will be repeated")
    return left.merge(right, on=key, how="left", suffixes=("", suffix))


def join_alerts_responses(
    alerts: pd.DataFrame,
    evaluations: pd.DataFrame,
    rrm: pd.DataFrame,
    postrrm: pd.DataFrame,
    columns: JoinColumns = JoinColumns(),
) -> pd.DataFrame:
    """
    Merge alerts with evaluations, RRM and post-RRM responses (left joins
    rooted at the alert table) and compute elapsed times between milestones.

    Elapsed times are whole days and stay missing when either endpoint is
    missing. The has_*_response flags depend only on the response counts.
    """
    c = columns
    require_columns(alerts, [c.uuid, c.incident_date, c.validation_date], stage="join_alerts_responses[alerts]")
    require_columns(evaluations, [c.uuid], stage="join_alerts_responses[evaluations]")
    require_columns(
        rrm, [c.uuid, c.rrm_response_number, c.rrm_start_date, c.rrm_end_date], stage="join_alerts_responses[rrm]"
    )
    require_columns(
        postrrm,
        [c.uuid, c.postrrm_response_number, c.postrrm_start_date, c.postrrm_end_date],
        stage="join_alerts_responses[postrrm]",
    )

    df = _left_join(alerts, evaluations, c.uuid, "_eval", "evaluations")
    df = _left_join(df, rrm, c.uuid, "_rrm", "rrm")
    df = _left_join(df, postrrm, c.uuid, "_postrrm", "postrrm")

    df[HAS_POSTRRM] = to_flag(df[c.postrrm_response_number])
    df[HAS_RRM] = to_flag(df[c.rrm_response_number])

    df["time_alert_to_validation"] = days_between(df[c.validation_date], df[c.incident_date])
    df["time_validation_to_rrm"] = days_between(df[c.rrm_start_date], df[c.validation_date])
    df["time_rrm_duration"] = days_between(df[c.rrm_end_date], df[c.rrm_start_date])
    df["time_rrm_to_postrrm"] = days_between(df[c.postrrm_start_date], df[c.rrm_end_date])
    df["time_postrrm_duration"] = days_between(df[c.postrrm_end_date], df[c.postrrm_start_date])
    df["time_alert_to_rrm"] = df["time_alert_to_validation"] + df["time_validation_to_rrm"]
    df["time_alert_to_postrrm"] = df["time_alert_to_rrm"] + df["time_rrm_to_postrrm"]

    logger.info(
        f"[JOIN] {len(df)} alerts joined "
        f"(rrm={int(df[HAS_RRM].sum())}, postrrm={int(df[HAS_POSTRRM].sum())})"
    )
    return df
