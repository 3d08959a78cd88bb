# tests/test_basic.py
import numpy as np
import pandas as pd
from xgboost import XGBRegressor

from data_loader import load_data, select_series
from features import generate_feature
from models.modeling import _check_schema, _check_inputs, fit, time_series_split, split_xy
from explain.explainer import Explainer, model_parts
from utils.constants import HORIZON
from utils.schema import FEATURE_COLS, TARGET_COL  # <-- single source of truth


def test_generate_feature_columns():
    """Features: engineered columns exist; lag behavior remains sane."""
    dates = pd.date_range("2017-07-01", periods=120, freq="h")
    df = pd.DataFrame({"date": dates, "value": np.arange(120, dtype=float)})

    out = generate_feature(df, drop_na=False)

    needed = {"lag48", "roll12", "roll24", "hour", "wday", "am_pm",
              "sin24_K1", "cos12_K2"}
    assert needed.issubset(set(out.columns))
    assert out.loc[60, "lag48"] == out.loc[12, "value"]


def test_modeling_checks_valid_inputs(hourly_series):
    """Modeling checks pass on the generated features."""
    feats = generate_feature(hourly_series)
    X = feats[FEATURE_COLS]
    y = feats[TARGET_COL]

    # No exceptions -> passes schema & input checks
    _check_schema(X, y)
    X_checked, y_checked = _check_inputs(X, y)
    assert len(X_checked) == len(y_checked) == len(feats)
    assert list(X_checked.columns) == FEATURE_COLS


# ==== SMOKE TESTS ===================================

def test_pipeline_smoke_data_loader_to_explanation(m4_csv):
    """
    End-to-end smoke: data_loader -> features -> modeling -> explainer.
    Ensures no exceptions are raised on a small series.
    """
    raw = load_data(str(m4_csv))
    series = select_series(raw, "Hourly", "H1")
    assert len(series) == 400

    feats = generate_feature(series)
    train, test = time_series_split(feats, HORIZON)
    X_train, y_train = split_xy(train)
    X_test, y_test = split_xy(test)

    model = fit(X_train, y_train, save_model=False)
    assert isinstance(model, XGBRegressor)

    explainer = Explainer(model, X_test, y_test, label="xgb")
    fi = model_parts(explainer, n_repeats=2)
    assert set(FEATURE_COLS).issubset(set(fi["variable"]))
