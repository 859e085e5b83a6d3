import pandas as pd
import pytest

from rrm_monitoring.db.indicator_store import connect, write_indicator_table
from rrm_monitoring.errors import MissingColumn
from rrm_monitoring.processing.aggregate_responses import (
    RESPONSE_NUMBER,
    ResponseColumns,
    aggregate_responses,
    join_distinct,
)

SECTORS = {
    "food": "food_aid",
    "wash": "water_sanitation",
    "nfi": "non_food_items",
    "shelter": "shelter_support",
    "health": "health_support",
    "protection": "protection_services",
    "mhm": "menstrual_hygiene",
    "enriched_flour": "fortified_flour",
    "education": "education_support",
    "livelihood": "livelihood_support",
}

COLUMNS = ResponseColumns(
    uuid="id",
    actor="organization",
    hh_number="households_supported",
    ind_number="people_supported",
    start_date="response_start_date",
    end_date="response_end_date",
    donor="donor",
    admin1="region",
    admin2="cercle",
    sectors=SECTORS,
)


@pytest.fixture
def raw():
    return pd.DataFrame(
        {
            "id": ["A", "A", "B", "B", "C"],
            "organization": ["Org1", "Org2", "Org3", None, "Org4"],
            "food_aid": [1, 0, 1, 1, 0],
            "water_sanitation": [0, 1, 1, 0, 1],
            "non_food_items": [1, 0, 0, 1, 1],
            "shelter_support": [0, 1, 1, 0, 1],
            "health_support": [1, 0, 1, 1, 0],
            "protection_services": [0, 1, 1, 0, 1],
            "menstrual_hygiene": [1, 0, 0, 1, 1],
            "fortified_flour": [0, 1, 1, 0, 1],
            "education_support": [1, 0, 1, 1, 0],
            "livelihood_support": [0, 1, 1, 0, 1],
            "households_supported": [3, 4, 5, None, 2],
            "people_supported": [10, 15, 20, None, 5],
            "response_start_date": pd.to_datetime(
                ["2024-01-10", "2024-01-15", "2024-02-01", "2024-02-10", "2024-03-05"]
            ),
            "response_end_date": pd.to_datetime(
                ["2024-01-20", "2024-01-25", "2024-02-10", "2024-02-20", "2024-03-10"]
            ),
            "donor": ["Donor1", "Donor1", "Donor2", "Donor2", "Donor3"],
            "region": ["Region1", "Region1", "Region2", "Region2", "Region3"],
            "cercle": ["Cercle1", "Cercle1", "Cercle2", "Cercle2", "Cercle3"],
        }
    )


def row(df, uuid):
    return df.loc[df["id"] == uuid].iloc[0]


def test_one_row_per_alert_in_first_seen_order(raw):
    out = aggregate_responses(raw, COLUMNS)

    assert out["id"].tolist() == ["A", "B", "C"]
    assert out.columns.tolist() == COLUMNS.output_columns
    assert out[RESPONSE_NUMBER].tolist() == [2, 2, 1]


def test_counts_take_max_ignoring_missing(raw):
    out = aggregate_responses(raw, COLUMNS)

    assert row(out, "B")["households_supported"] == 5
    assert row(out, "B")["people_supported"] == 20


def test_dates_earliest_start_and_longest_gap(raw):
    out = aggregate_responses(raw, COLUMNS)

    a = row(out, "A")
    assert a["response_start_date"] == pd.Timestamp("2024-01-10")
    assert a["response_end_date"] == pd.Timestamp("2024-01-20")
    b = row(out, "B")
    assert b["response_start_date"] == pd.Timestamp("2024-02-01")
    assert b["response_end_date"] == pd.Timestamp("2024-02-11")


def test_sector_flags_and_actor(raw):
    out = aggregate_responses(raw, COLUMNS)

    a = row(out, "A")
    assert a["food_aid"] == 1
    assert a["water_sanitation"] == 1
    assert row(out, "C")["food_aid"] == 0
    assert a["organization"] == "Org1,Org2"
    assert row(out, "B")["organization"] == "Org3"


def test_first_row_attributes(raw):
    out = aggregate_responses(raw, COLUMNS)

    assert row(out, "B")["donor"] == "Donor2"
    assert row(out, "C")["cercle"] == "Cercle3"


def test_single_rows_idempotent(raw):
    single = raw[raw["id"] == "C"]

    out = aggregate_responses(single, COLUMNS)

    assert len(out) == 1
    c = out.iloc[0]
    assert c[RESPONSE_NUMBER] == 1
    assert c["people_supported"] == 5
    assert c["response_end_date"] == pd.Timestamp("2024-03-10")


def test_all_missing_counts_stay_missing(raw):
    raw.loc[raw["id"] == "A", ["households_supported", "people_supported"]] = None
    raw.loc[raw["id"] == "A", "organization"] = None

    out = aggregate_responses(raw, COLUMNS)

    a = row(out, "A")
    assert pd.isna(a["households_supported"])
    assert pd.isna(a["people_supported"])
    assert pd.isna(a["organization"])


def test_empty_input(raw):
    out = aggregate_responses(raw.iloc[0:0], COLUMNS)

    assert out.empty
    assert out.columns.tolist() == COLUMNS.output_columns


def test_empty_input_keeps_dtypes(raw):
    out = aggregate_responses(raw.iloc[0:0], COLUMNS)

    assert out[RESPONSE_NUMBER].dtype == "int64"
    assert out["food_aid"].dtype == "int64"
    assert out["people_supported"].dtype == "Int64"
    assert out["response_start_date"].dtype == "datetime64[ns]"
    assert out["response_end_date"].dtype == "datetime64[ns]"
    assert out["organization"].dtype == object


def test_empty_aggregate_table_types(raw):
    con = connect(":memory:")
    try:
        write_indicator_table(con, "rrm_responses", aggregate_responses(raw.iloc[0:0], COLUMNS))
        types = dict(
            con.execute(
                "SELECT column_name, data_type FROM information_schema.columns WHERE table_name = 'rrm_responses'"
            ).fetchall()
        )
    finally:
        con.close()

    assert types["response_start_date"].startswith("TIMESTAMP")
    assert types["response_end_date"].startswith("TIMESTAMP")
    assert types["people_supported"] == "BIGINT"
    assert types["food_aid"] == "BIGINT"


def test_missing_sector_column(raw):
    with pytest.raises(MissingColumn):
        aggregate_responses(raw.drop(columns=["fortified_flour"]), COLUMNS)


def test_join_distinct():
    assert join_distinct(pd.Series(["b", "a", "b", None, " "])) == "b,a"
    assert join_distinct(pd.Series([None, None])) is None
