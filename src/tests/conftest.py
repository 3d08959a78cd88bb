# src/tests/conftest.py
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import yaml

# Add the parent directory of this tests folder (i.e., src/) to sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


def _hourly_values(n: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    t = np.arange(n)
    return 500 + 80 * np.sin(2 * np.pi * t / 24) + 20 * np.cos(2 * np.pi * t / 168) + rng.normal(0, 5, n)


@pytest.fixture
def hourly_series():
    """400 hourly observations (date, value) starting 2017-07-01 00:00."""
    dates = pd.date_range("2017-07-01 00:00", periods=400, freq="h")
    return pd.DataFrame({"date": dates, "value": _hourly_values(len(dates))})


@pytest.fixture
def m4_df(hourly_series):
    """Long M4-style table: two hourly series and one daily series."""
    h1 = hourly_series.assign(id="H1", type="Other", period="Hourly")
    h2 = hourly_series.assign(id="H2", type="Other", period="Hourly",
                              value=hourly_series["value"] * 2.0)
    d1 = pd.DataFrame({
        "date": pd.date_range("2017-01-01", periods=30, freq="D"),
        "value": np.arange(30, dtype=float),
    }).assign(id="D1", type="Macro", period="Daily")
    cols = ["id", "type", "period", "date", "value"]
    return pd.concat([h1, h2, d1], ignore_index=True)[cols]


@pytest.fixture
def m4_csv(tmp_path, m4_df):
    p = tmp_path / "m4.csv"
    m4_df.to_csv(p, index=False)
    return p


@pytest.fixture
def linear_data():
    """a drives the target strongly, b weakly, c not at all."""
    rng = np.random.default_rng(1)
    n = 60
    X = pd.DataFrame({
        "a": rng.normal(0, 1, n),
        "b": rng.normal(0, 1, n),
        "c": rng.integers(0, 5, n).astype("int64"),
    })
    y = pd.Series(3.0 * X["a"] + 0.5 * X["b"] + rng.normal(0, 0.01, n), name="value")
    return X, y


@pytest.fixture
def linear_explainer(linear_data):
    from sklearn.linear_model import LinearRegression
    from explain.explainer import Explainer

    X, y = linear_data
    model = LinearRegression().fit(X, y)
    return Explainer(model, X, y, label="linear", categorical=[])


@pytest.fixture
def config_path(tmp_path, m4_csv):
    """Small, JVM-free run configuration writing into tmp_path."""
    cfg = {
        "data": {"path": str(m4_csv), "frequency": "Hourly", "series_id": "H1"},
        "model": {"backend": "xgboost", "dir": str(tmp_path / "models")},
        "explain": {
            "label": "xgb test",
            "observations": ["2017-07-17 14:00:00"],
            "n_repeats": 2,
            "shap_background": 5,
            "shap_nsamples": 200,
            "lime_permutations": 200,
            "neighbors": 5,
        },
        "report": {"out_dir": str(tmp_path / "reports"), "formats": ["html"], "title": "test report"},
    }
    p = tmp_path / "xai_ts.yaml"
    with open(p, "w") as f:
        yaml.safe_dump(cfg, f)
    return p
