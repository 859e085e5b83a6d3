import pandas as pd
import pytest

from rrm_monitoring.errors import InvalidConfiguration, MissingColumn
from rrm_monitoring.processing.clean_household import clean_hh_number, validate_hhsize


def counts(values):
    return pd.Series(values, dtype="Int64")


def test_imputes_missing_counts():
    df = pd.DataFrame({"hh_number": [10, None, 15, None], "ind_number": [50, 30, None, 100]})

    out = clean_hh_number(df, "hh_number", "ind_number", 5)

    pd.testing.assert_series_equal(out["hh_number"], counts([10, 6, 15, 20]), check_names=False)
    pd.testing.assert_series_equal(out["ind_number"], counts([50, 30, 75, 100]), check_names=False)


def test_hh_never_exceeds_ind():
    df = pd.DataFrame({"hh_number": [50, 15, 20], "ind_number": [40, 30, 100]})

    out = clean_hh_number(df, "hh_number", "ind_number", 5)

    assert out["hh_number"].tolist() == [8, 15, 20]
    assert out["ind_number"].tolist() == [40, 30, 100]


def test_consistent_rows_are_untouched():
    df = pd.DataFrame({"hh_number": [10, 20, 15], "ind_number": [50, 100, 75]})

    out = clean_hh_number(df, "hh_number", "ind_number", 5)

    assert out["hh_number"].tolist() == [10, 20, 15]
    assert out["ind_number"].tolist() == [50, 100, 75]


def test_edge_cases():
    df = pd.DataFrame({"hh_number": [None, None, 0, 100], "ind_number": [None, 50, 10, 500]})

    out = clean_hh_number(df, "hh_number", "ind_number", 5)

    pd.testing.assert_series_equal(out["hh_number"], counts([None, 10, 0, 100]), check_names=False)
    pd.testing.assert_series_equal(out["ind_number"], counts([None, 50, 10, 500]), check_names=False)


def test_input_frame_not_modified():
    df = pd.DataFrame({"hh_number": [None], "ind_number": [30]})
    clean_hh_number(df, "hh_number", "ind_number", 5)
    assert pd.isna(df.loc[0, "hh_number"])


@pytest.mark.parametrize("bad", [0, -3, None, "abc", float("nan")])
def test_invalid_hhsize(bad):
    df = pd.DataFrame({"hh_number": [1], "ind_number": [5]})
    with pytest.raises(InvalidConfiguration):
        clean_hh_number(df, "hh_number", "ind_number", bad)


def test_validate_hhsize_rounds():
    assert validate_hhsize(5.6) == 6
    assert validate_hhsize("7") == 7


def test_missing_column():
    df = pd.DataFrame({"hh_number": [1]})
    with pytest.raises(MissingColumn) as exc:
        clean_hh_number(df, "hh_number", "ind_number", 5)
    assert exc.value.columns == ("ind_number",)
    assert exc.value.stage == "clean_hh_number"
