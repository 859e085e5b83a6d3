import importlib.util
from pathlib import Path

import pandas as pd
import pytest
import yaml

from rrm_monitoring.db.indicator_store import connect, read_table
from rrm_monitoring.errors import InvalidConfiguration
from rrm_monitoring.indicators.timelines import ReportingWindow
from rrm_monitoring.pipeline.monthly_pipeline import (
    MonthlyInputs,
    PipelineSettings,
    read_input_table,
    run_monthly_pipeline,
    settings_from_config,
)
from rrm_monitoring.processing.aggregate_responses import DEFAULT_SECTOR_COLUMNS

ROOT = Path(__file__).resolve().parents[1]
WINDOW = ReportingWindow("2024-03-01", "2024-04-01")


def response_rows(rows):
    """Raw response table with every default sector column."""
    df = pd.DataFrame(
        rows,
        columns=["uuid", "response_actor", "hh_number", "ind_number", "response_start_date", "response_end_date"],
    )
    for i, col in enumerate(DEFAULT_SECTOR_COLUMNS.values()):
        df[col] = 1 if i % 2 == 0 else 0
    df["response_donor"] = "ECHO"
    df["admin1"] = "R1"
    df["admin2"] = "C1"
    return df


@pytest.fixture
def inputs():
    alerts = pd.DataFrame(
        {
            "uuid": ["a1", "a2", "a3", "a4"],
            "incident_date": ["2024-03-02", "2024-03-10", "2024-01-05", "2024-03-12"],
            "validation_date": ["2024-03-04", "2024-03-12", "2024-01-08", None],
            "alert_status": ["Validated", "Validated", "Validated", "Pending"],
            "hh_number": [None, 10, 8, 3],
            "ind_number": [60, None, 48, 18],
            "priority_needs": ["food nfi", "wash", "food", "shelter"],
            "admin1": ["R1", "R2", "R1", "R2"],
            "admin2": ["C1", "C5", "C2", "C6"],
        }
    )
    evaluations = pd.DataFrame(
        {
            "uuid": ["a1", "a2", "a3"],
            "food_need": [1, 1, 1],
            "wash_need": [0, 1, 0],
        }
    )
    rrm = response_rows(
        [
            ["a1", "NGO1", 5, 30, "2024-03-06", "2024-03-10"],
            ["a1", "NGO2", 8, 48, "2024-03-08", "2024-03-14"],
            ["a3", "NGO1", 8, 48, "2024-01-20", "2024-01-25"],
        ]
    )
    postrrm = response_rows([["a3", "NGO3", 8, 48, "2024-03-15", "2024-03-20"]])
    return MonthlyInputs(alerts=alerts, evaluations=evaluations, rrm=rrm, postrrm=postrrm)


@pytest.fixture
def settings():
    return PipelineSettings(
        hhsize=6,
        valid_status="Validated",
        sector_gaps={"Food": ("food_need", "food_response"), "WASH": ("wash_need", "wash_response")},
        regions=["national", "R2"],
    )


def test_pipeline_end_to_end(inputs, settings):
    result = run_monthly_pipeline(inputs, WINDOW, settings)

    joined = result.alerts_responses.set_index("uuid")
    assert len(joined) == 4
    assert joined.loc["a1", "hh_number"] == 10
    assert joined.loc["a2", "ind_number"] == 60
    assert joined.loc["a1", "rrm_response_number"] == 2
    assert joined.loc["a1", "rrm_response_actor"] == "NGO1,NGO2"
    assert joined.loc["a1", "has_rrm_response"] == 1
    assert joined.loc["a2", "has_rrm_response"] == 0
    assert joined.loc["a3", "has_postrrm_response"] == 1

    key = result.summaries["key_summary_gaps"].iloc[0]
    assert key["validated_alerts"] == 2
    assert key["treated_alerts"] == 1
    assert key["non_treated_alerts"] == 1
    assert key["response_ind_assisted"] == 48
    assert key["response_ind_notassisted"] == 60

    gap = result.gap_lists["summary_gap_rrm_list_national"]
    assert gap["uuid"].tolist() == ["a2"]
    assert result.gap_lists["summary_gap_rrm_list_R2"]["uuid"].tolist() == ["a2"]

    sectors = result.summaries["sector_gaps"].set_index("sector_in_need")
    assert sectors.loc["Food", "response_need_covered"] == 48


def test_pipeline_positioning(inputs, settings):
    result = run_monthly_pipeline(inputs, WINDOW, settings)

    joined = result.alerts_responses.set_index("uuid")
    # a3: RRM started 2024-01-20 -> forecast 2024-04-19, post-RRM started in the window
    assert joined.loc["a3", "prev_postrrm_date"] == pd.Timestamp("2024-04-19")
    assert joined.loc["a3", "C"] == 1
    assert joined.loc["a3", "forecast"] == 0
    assert joined.loc["a4", "validation"] == 0
    assert set(result.indicator_lists) == {"forecast", "arrears"}


def test_pipeline_tables_and_metrics(inputs, settings):
    result = run_monthly_pipeline(inputs, WINDOW, settings)

    tables = result.tables()
    for name in (
        "rrm_responses",
        "postrrm_responses",
        "alerts_responses",
        "key_summary_gaps",
        "sector_gaps",
        "spatial_gaps_national",
        "spatial_gaps_admin1",
        "response_summary",
        "response_sector",
        "gap_list",
        "postrrm_indicator_list",
    ):
        assert name in tables, name
    assert sorted(tables["gap_list"]["region"].unique()) == ["R2", "national"]

    metrics = result.metrics()
    assert metrics["alerts_rows"] == 4
    assert metrics["rrm_rows"] == 3
    assert metrics["postrrm_rows"] == 1


def test_pipeline_does_not_modify_inputs(inputs, settings):
    before = inputs.alerts.copy()
    run_monthly_pipeline(inputs, WINDOW, settings)
    pd.testing.assert_frame_equal(inputs.alerts, before)


def test_invalid_settings():
    with pytest.raises(InvalidConfiguration):
        PipelineSettings(hhsize=0, valid_status="Validated")
    with pytest.raises(InvalidConfiguration):
        PipelineSettings(hhsize=6, valid_status="")
    with pytest.raises(InvalidConfiguration):
        PipelineSettings(hhsize=6, valid_status="Validated", sector_gaps={"Food": "food_need"})


def test_settings_from_shipped_config():
    cfg = yaml.safe_load((ROOT / "config" / "settings.yaml").read_text(encoding="utf-8"))

    settings = settings_from_config(cfg)

    assert settings.hhsize == 6
    assert settings.rrm_columns.start_date == "response_start_date"
    assert settings.sector_gaps["Food"] == ("food_need", "food_response")


def test_read_input_table(tmp_path):
    path = tmp_path / "alerts.csv"
    pd.DataFrame({"uuid": ["a"]}).to_csv(path, index=False)

    assert read_input_table(path)["uuid"].tolist() == ["a"]
    with pytest.raises(InvalidConfiguration):
        read_input_table(tmp_path / "alerts.xlsx")
    bad = tmp_path / "alerts.txt"
    bad.write_text("x", encoding="utf-8")
    with pytest.raises(InvalidConfiguration):
        read_input_table(bad)


# =============================================================================
# CLI
# =============================================================================

def load_cli():
    spec = importlib.util.spec_from_file_location("run_monthly_pipeline", ROOT / "scripts" / "run_monthly_pipeline.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def write_config(tmp_path, inputs, hhsize=6):
    paths = {}
    for name in ("alerts", "evaluations", "rrm", "postrrm"):
        path = tmp_path / f"{name}.csv"
        getattr(inputs, name).to_csv(path, index=False)
        paths[name] = str(path)
    cfg = {
        "data_paths": paths,
        "parameters": {"hhsize": hhsize, "valid_status": "Validated", "regions": ["national"]},
        "sector_gaps": {"Food": ["food_need", "food_response"]},
        "columns": {},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    return path


def test_cli_writes_tables_and_run_log(tmp_path, inputs):
    cli = load_cli()
    config = write_config(tmp_path, inputs)
    db = tmp_path / "rrm.duckdb"

    code = cli.main(
        ["--prev-period", "2024-03-01", "--current-period", "2024-04-01", "--config", str(config), "--db", str(db)]
    )

    assert code == 0
    con = connect(db)
    try:
        assert len(read_table(con, "alerts_responses")) == 4
        status = con.execute("SELECT status, exit_code FROM ops_pipeline_runs").fetchall()
        assert status == [("OK", 0)]
    finally:
        con.close()


def test_cli_dry_run_writes_nothing(tmp_path, inputs):
    cli = load_cli()
    config = write_config(tmp_path, inputs)
    db = tmp_path / "rrm.duckdb"

    code = cli.main(
        ["--prev-period", "2024-03-01", "--current-period", "2024-04-01", "--config", str(config), "--db", str(db), "--dry-run"]
    )

    assert code == 0
    assert not db.exists()


def test_cli_configuration_errors(tmp_path, inputs):
    cli = load_cli()
    config = write_config(tmp_path, inputs, hhsize=0)

    assert cli.main(["--prev-period", "2024-03-01", "--current-period", "2024-04-01", "--config", str(config)]) == 2
    good = write_config(tmp_path, inputs)
    assert cli.main(["--prev-period", "2024-04-01", "--current-period", "2024-03-01", "--config", str(good)]) == 2
