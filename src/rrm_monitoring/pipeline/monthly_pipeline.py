"""
Monthly RRM monitoring pipeline.

Runs the full chain for one reporting window:

1. Cleaning of alerts and RRM / post-RRM response tables
2. Aggregation of responses to one row per alert
3. Join alerts / evaluations / RRM / post-RRM + elapsed times
4. Forecast post-RRM date + positioning indicators (forecast / arrears)
5. Monthly summaries (key gaps, sector gaps, spatial gaps, gap list,
   response summaries)

Everything here works on in-memory DataFrames; reading the input files and
writing to DuckDB is done by ``load_inputs`` and the indicator store so the
core run stays a pure function of its inputs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from loguru import logger

from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.extract_uuids import extract_uuid_by_indicator
from rrm_monitoring.indicators.postrrm_forecast import PREV_POSTRRM_DATE, ForecastColumns, add_prev_postrrm_date
from rrm_monitoring.indicators.postrrm_positioning import (
    DEFAULT_POSTRRM_START_THRESHOLD,
    INDICATORS,
    PositioningColumns,
    add_postrrm_positioning_indicators,
)
from rrm_monitoring.indicators.timelines import ReportingWindow, TimelineColumns
from rrm_monitoring.processing.aggregate_responses import RESPONSE_NUMBER, ResponseColumns, aggregate_responses
from rrm_monitoring.processing.clean_dates import parse_dates
from rrm_monitoring.processing.clean_datasets import HouseholdDateColumns, clean_rrm_dataset
from rrm_monitoring.processing.clean_household import clean_hh_number, validate_hhsize
from rrm_monitoring.processing.join_alerts_responses import HAS_RRM, JoinColumns, join_alerts_responses
from rrm_monitoring.summaries.gap_list import GapListColumns, compute_monthly_gap_list
from rrm_monitoring.summaries.response_summary import (
    ResponseSummaryColumns,
    compute_monthly_response_sector,
    compute_monthly_response_summary,
)
from rrm_monitoring.summaries.sector_gaps import compute_monthly_summary_sector_gaps, validate_sector_mapping
from rrm_monitoring.summaries.spatial_gaps import ADMIN_LEVELS, compute_monthly_spatial_summary_gaps
from rrm_monitoring.summaries.summary_gaps import compute_monthly_key_summary_gaps
from rrm_monitoring.utils.config import PROJECT_ROOT, build_columns, section
from rrm_monitoring.utils.dq_checks import (
    DQResult,
    check_min_rows,
    check_required_columns,
    check_unique_key,
    column_names,
    summarize_results,
)

RRM_PREFIX = "rrm_"
POSTRRM_PREFIX = "postrrm_"


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass(frozen=True)
class AlertColumns:
    uuid: str = "uuid"
    incident_date: str = "incident_date"
    validation_date: str = "validation_date"
    alert_status: str = "alert_status"
    hh_number: str = "hh_number"
    ind_number: str = "ind_number"
    priority_needs: str = "priority_needs"
    admin1: str = "admin1"
    admin2: str = "admin2"


@dataclass
class PipelineSettings:
    hhsize: int
    valid_status: str
    alert_columns: AlertColumns = field(default_factory=AlertColumns)
    rrm_columns: ResponseColumns = field(default_factory=ResponseColumns)
    postrrm_columns: ResponseColumns = field(default_factory=ResponseColumns)
    postrrm_start_threshold: Any = DEFAULT_POSTRRM_START_THRESHOLD
    date_format: Optional[str] = None
    # sector label -> (need column in evaluations, raw RRM response column)
    sector_gaps: Dict[str, Tuple[str, str]] = field(default_factory=dict)
    regions: List[str] = field(default_factory=lambda: ["national"])
    desag_by: Optional[str] = None

    def __post_init__(self):
        self.hhsize = validate_hhsize(self.hhsize)
        if not isinstance(self.valid_status, str) or not self.valid_status:
            raise InvalidConfiguration("valid_status must be a non-empty string")
        if self.sector_gaps:
            self.sector_gaps = validate_sector_mapping(self.sector_gaps)


def settings_from_config(cfg: Dict[str, Any]) -> PipelineSettings:
    """Build PipelineSettings from the parsed settings.yaml."""
    params = section(cfg, "parameters")
    cols = section(cfg, "columns")
    return PipelineSettings(
        hhsize=params.get("hhsize"),
        valid_status=params.get("valid_status"),
        alert_columns=build_columns(AlertColumns, cols.get("alerts")),
        rrm_columns=build_columns(ResponseColumns, cols.get("rrm")),
        postrrm_columns=build_columns(ResponseColumns, cols.get("postrrm")),
        postrrm_start_threshold=params.get("postrrm_start_threshold", DEFAULT_POSTRRM_START_THRESHOLD),
        date_format=params.get("date_format"),
        sector_gaps=cfg.get("sector_gaps") or {},
        regions=list(params.get("regions") or ["national"]),
        desag_by=params.get("desag_by"),
    )


@dataclass
class MonthlyInputs:
    alerts: pd.DataFrame
    evaluations: pd.DataFrame
    rrm: pd.DataFrame
    postrrm: pd.DataFrame


@dataclass
class MonthlyResult:
    window: ReportingWindow
    alerts_cleaned: pd.DataFrame
    rrm_cleaned: pd.DataFrame
    postrrm_cleaned: pd.DataFrame
    rrm_aggregated: pd.DataFrame
    postrrm_aggregated: pd.DataFrame
    alerts_responses: pd.DataFrame
    summaries: Dict[str, pd.DataFrame]
    gap_lists: Dict[str, pd.DataFrame]
    indicator_lists: Dict[str, pd.DataFrame]

    def tables(self) -> Dict[str, pd.DataFrame]:
        """Flat tables for the DuckDB store (gap lists stacked with a region column)."""
        out = {
            "rrm_responses": self.rrm_aggregated,
            "postrrm_responses": self.postrrm_aggregated,
            "alerts_responses": self.alerts_responses,
            **self.summaries,
        }
        out["gap_list"] = stack_lists(self.gap_lists, "region", prefix="summary_gap_rrm_list_")
        out["postrrm_indicator_list"] = stack_lists(self.indicator_lists, "indicator")
        return out

    def metrics(self) -> Dict[str, int]:
        return {
            "alerts_rows": len(self.alerts_cleaned),
            "rrm_rows": len(self.rrm_cleaned),
            "postrrm_rows": len(self.postrrm_cleaned),
            "joined_rows": len(self.alerts_responses),
            "forecast_alerts": int(self.alerts_responses["forecast"].sum()),
            "arrears_alerts": int(self.alerts_responses["arrears"].sum()),
        }


def stack_lists(lists: Dict[str, pd.DataFrame], key: str, prefix: str = "") -> pd.DataFrame:
    frames = [df.assign(**{key: name[len(prefix):] if name.startswith(prefix) else name}) for name, df in lists.items()]
    if not frames:
        return pd.DataFrame(columns=[key])
    return pd.concat(frames, ignore_index=True)


# =============================================================================
# STEPS
# =============================================================================

def prefixed(df: pd.DataFrame, uuid: str, prefix: str) -> pd.DataFrame:
    return df.rename(columns={c: f"{prefix}{c}" for c in df.columns if c != uuid})


def clean_alerts(alerts: pd.DataFrame, settings: PipelineSettings) -> pd.DataFrame:
    a = settings.alert_columns
    out = parse_dates(alerts, [a.incident_date, a.validation_date], date_format=settings.date_format)
    return clean_hh_number(out, a.hh_number, a.ind_number, settings.hhsize)


def clean_responses(df: pd.DataFrame, columns: ResponseColumns, settings: PipelineSettings) -> pd.DataFrame:
    hd = HouseholdDateColumns(
        hh_number=columns.hh_number,
        ind_number=columns.ind_number,
        start_date=columns.start_date,
        end_date=columns.end_date,
    )
    return clean_rrm_dataset(df, hd, settings.hhsize, date_format=settings.date_format)


def join_columns(settings: PipelineSettings) -> JoinColumns:
    a, r, p = settings.alert_columns, settings.rrm_columns, settings.postrrm_columns
    return JoinColumns(
        uuid=a.uuid,
        incident_date=a.incident_date,
        validation_date=a.validation_date,
        rrm_response_number=f"{RRM_PREFIX}{RESPONSE_NUMBER}",
        rrm_start_date=f"{RRM_PREFIX}{r.start_date}",
        rrm_end_date=f"{RRM_PREFIX}{r.end_date}",
        postrrm_response_number=f"{POSTRRM_PREFIX}{RESPONSE_NUMBER}",
        postrrm_start_date=f"{POSTRRM_PREFIX}{p.start_date}",
        postrrm_end_date=f"{POSTRRM_PREFIX}{p.end_date}",
    )


def timeline_columns(settings: PipelineSettings) -> TimelineColumns:
    a, r = settings.alert_columns, settings.rrm_columns
    return TimelineColumns(
        incident_date=a.incident_date,
        alert_status=a.alert_status,
        valid_status=settings.valid_status,
        # earliest RRM start of the alert; uuids_started_in_window looks at every raw row
        start_response_date=f"{RRM_PREFIX}{r.start_date}",
        alert_ind_number=a.ind_number,
        response_ind_number=f"{RRM_PREFIX}{r.ind_number}",
    )


def classify_alerts(joined: pd.DataFrame, window: ReportingWindow, settings: PipelineSettings) -> pd.DataFrame:
    a, jc = settings.alert_columns, join_columns(settings)
    with_forecast = add_prev_postrrm_date(
        joined,
        ForecastColumns(
            rrm_started=HAS_RRM,
            rrm_start_date=jc.rrm_start_date,
            alert_status=a.alert_status,
            valid_status=settings.valid_status,
            incident_date=a.incident_date,
            time_alert_to_rrm="time_alert_to_rrm",
        ),
    )
    return add_postrrm_positioning_indicators(
        with_forecast,
        window,
        PositioningColumns(
            alert_status=a.alert_status,
            valid_status=settings.valid_status,
            validation_date=a.validation_date,
            postrrm_start_date=jc.postrrm_start_date,
            prev_postrrm_date=PREV_POSTRRM_DATE,
        ),
        threshold=settings.postrrm_start_threshold,
    )


def compute_summaries(
    result_joined: pd.DataFrame,
    rrm_cleaned: pd.DataFrame,
    rrm_aggregated: pd.DataFrame,
    window: ReportingWindow,
    settings: PipelineSettings,
) -> Tuple[Dict[str, pd.DataFrame], Dict[str, pd.DataFrame]]:
    a, r = settings.alert_columns, settings.rrm_columns
    tl = timeline_columns(settings)

    summaries: Dict[str, pd.DataFrame] = {
        "key_summary_gaps": compute_monthly_key_summary_gaps(result_joined, window, tl),
    }
    if settings.desag_by:
        summaries["key_summary_gaps_by_group"] = compute_monthly_key_summary_gaps(
            result_joined, window, tl, desag_by=settings.desag_by
        )
    if settings.sector_gaps:
        mapping = {
            sector: (need_col, f"{RRM_PREFIX}{response_col}")
            for sector, (need_col, response_col) in settings.sector_gaps.items()
        }
        summaries["sector_gaps"] = compute_monthly_summary_sector_gaps(result_joined, window, tl, mapping)
    for level in ADMIN_LEVELS:
        summaries[f"spatial_gaps_{level}"] = compute_monthly_spatial_summary_gaps(
            result_joined, window, tl, admin1=a.admin1, admin2=a.admin2, admin_desag=level
        )

    rs = ResponseSummaryColumns(uuid=r.uuid, start_response_date=r.start_date, ind_number=r.ind_number)
    summaries["response_summary"] = compute_monthly_response_summary(rrm_cleaned, rrm_aggregated, window, rs)
    summaries["response_sector"] = compute_monthly_response_sector(
        rrm_cleaned, rrm_aggregated, window, dict(r.sectors), rs
    )

    gap_lists = compute_monthly_gap_list(
        result_joined,
        window,
        tl,
        GapListColumns(
            uuid=a.uuid,
            hh_number=a.hh_number,
            ind_number=a.ind_number,
            priority_needs=a.priority_needs,
            admin1=a.admin1,
            admin2=a.admin2,
        ),
        settings.regions,
    )
    return summaries, gap_lists


def check_inputs(inputs: MonthlyInputs, settings: PipelineSettings) -> DQResult:
    a = settings.alert_columns
    checks = [
        check_min_rows(len(inputs.alerts)),
        check_required_columns(inputs.alerts, column_names(a), "alerts"),
        check_required_columns(inputs.evaluations, [a.uuid], "evaluations"),
        check_required_columns(inputs.rrm, column_names(settings.rrm_columns), "rrm"),
        check_required_columns(inputs.postrrm, column_names(settings.postrrm_columns), "postrrm"),
        check_unique_key(inputs.alerts, a.uuid, "alerts"),
        check_unique_key(inputs.evaluations, a.uuid, "evaluations"),
    ]
    return summarize_results(checks)


def run_monthly_pipeline(inputs: MonthlyInputs, window: ReportingWindow, settings: PipelineSettings) -> MonthlyResult:
    """Run every stage for one reporting window and return all output tables."""
    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info(f"RRM MONTHLY PIPELINE {window.label()}")
    logger.info("=" * 60)

    dq = check_inputs(inputs, settings)
    for check in dq.checks:
        if not check["ok"]:
            logger.warning(f"[DQ] {check}")

    logger.info("[1/5] CLEANING")
    alerts = clean_alerts(inputs.alerts, settings)
    rrm_cleaned = clean_responses(inputs.rrm, settings.rrm_columns, settings)
    postrrm_cleaned = clean_responses(inputs.postrrm, settings.postrrm_columns, settings)

    logger.info("[2/5] AGGREGATION")
    rrm_aggregated = aggregate_responses(rrm_cleaned, settings.rrm_columns)
    postrrm_aggregated = aggregate_responses(postrrm_cleaned, settings.postrrm_columns)

    logger.info("[3/5] JOIN")
    uuid = settings.alert_columns.uuid
    rrm_side = prefixed(rrm_aggregated, settings.rrm_columns.uuid, RRM_PREFIX).rename(
        columns={settings.rrm_columns.uuid: uuid}
    )
    postrrm_side = prefixed(postrrm_aggregated, settings.postrrm_columns.uuid, POSTRRM_PREFIX).rename(
        columns={settings.postrrm_columns.uuid: uuid}
    )
    joined = join_alerts_responses(alerts, inputs.evaluations, rrm_side, postrrm_side, join_columns(settings))

    logger.info("[4/5] POST-RRM POSITIONING")
    classified = classify_alerts(joined, window, settings)
    indicator_lists = extract_uuid_by_indicator(classified, uuid, PREV_POSTRRM_DATE, INDICATORS)

    logger.info("[5/5] SUMMARIES")
    summaries, gap_lists = compute_summaries(classified, rrm_cleaned, rrm_aggregated, window, settings)

    duration = (datetime.now() - start_time).total_seconds()
    logger.success(f"PIPELINE COMPLETED in {duration:.1f}s ({len(classified)} alerts)")

    return MonthlyResult(
        window=window,
        alerts_cleaned=alerts,
        rrm_cleaned=rrm_cleaned,
        postrrm_cleaned=postrrm_cleaned,
        rrm_aggregated=rrm_aggregated,
        postrrm_aggregated=postrrm_aggregated,
        alerts_responses=classified,
        summaries=summaries,
        gap_lists=gap_lists,
        indicator_lists=indicator_lists,
    )


# =============================================================================
# I/O
# =============================================================================

def read_input_table(path: str | Path) -> pd.DataFrame:
    """Read an already-typed CSV or parquet export."""
    p = Path(path)
    if not p.is_absolute():
        p = PROJECT_ROOT / p
    if not p.exists():
        raise InvalidConfiguration(f"Input file not found: {p}")
    if p.suffix.lower() == ".csv":
        return pd.read_csv(p)
    if p.suffix.lower() == ".parquet":
        return pd.read_parquet(p)
    raise InvalidConfiguration(f"Unsupported input format {p.suffix!r} (expected .csv or .parquet): {p}")


def load_inputs(cfg: Dict[str, Any]) -> MonthlyInputs:
    paths = section(cfg, "data_paths")
    tables = {}
    for name in ("alerts", "evaluations", "rrm", "postrrm"):
        if name not in paths:
            raise InvalidConfiguration(f"Missing settings entry: data_paths.{name}")
        tables[name] = read_input_table(paths[name])
        logger.info(f"[INPUT] {name}: {len(tables[name])} rows from {paths[name]}")
    return MonthlyInputs(**tables)
