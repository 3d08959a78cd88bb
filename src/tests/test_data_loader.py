import pandas as pd
import pytest

from data_loader import load_data, select_series, list_series, DataLoaderError


def test_load_valid_csv(m4_csv):
    df = load_data(str(m4_csv))
    assert not df.empty
    assert pd.api.types.is_datetime64_any_dtype(df["date"])
    assert df["value"].dtype == "float64"
    assert set(df["period"].unique()) == {"Hourly", "Daily"}


def test_missing_column_raises(tmp_path, m4_df):
    p = tmp_path / "no_period.csv"
    m4_df.drop(columns=["period"]).to_csv(p, index=False)
    with pytest.raises(KeyError):
        load_data(str(p))


def test_invalid_row_drops(tmp_path, m4_df):
    m4_df = m4_df.astype({"value": "object"})
    m4_df.loc[3, "value"] = "not-a-number"
    p = tmp_path / "bad.csv"
    m4_df.to_csv(p, index=False)
    with pytest.raises(DataLoaderError, match="1 row"):
        load_data(str(p))


def test_select_series_filters_and_sorts(m4_df):
    shuffled = m4_df.sample(frac=1.0, random_state=0)
    out = select_series(shuffled, "Hourly", "H2")
    assert list(out.columns) == ["date", "value"]
    assert len(out) == 400
    assert out["date"].is_monotonic_increasing


def test_select_series_unknown_id(m4_df):
    with pytest.raises(ValueError, match="Available ids"):
        select_series(m4_df, "Hourly", "H999")


def test_select_series_duplicate_timestamps(m4_df):
    dup = pd.concat([m4_df, m4_df[m4_df["id"] == "H1"].head(1).assign(value=1.0)], ignore_index=True)
    with pytest.raises(ValueError, match="duplicated"):
        select_series(dup, "Hourly", "H1")


def test_list_series(m4_df):
    assert list_series(m4_df, "Hourly") == ["H1", "H2"]
    assert list_series(m4_df, "Daily") == ["D1"]
