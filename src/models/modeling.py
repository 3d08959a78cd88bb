# modeling.py
"""
Train/test split, input checks and the local baseline model.
- Chronological split sized to the forecast horizon (no shuffling).
- XGBoost regressor as the JVM-free backend; the H2O AutoML backend lives in automl.py.
- Accuracy table in the modeltime layout: mae, mape, mase, smape, rmse, rsq.
"""

import os
import pickle
from datetime import datetime

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error, r2_score
from xgboost import XGBRegressor

from utils.schema import TARGET_COL
from utils.constants import DATE_COL, SEED
from utils.math_utils import mape, accuracy_metrics

# Directory of this script
_THIS_DIR = os.path.dirname(os.path.abspath(__file__))


# ------------------ Split ------------------
def time_series_split(df: pd.DataFrame, horizon: int):
    """
    Cumulative chronological split: the last `horizon` rows are the test set,
    every earlier row is training data.
    """
    if int(horizon) < 1:
        raise ValueError(f"horizon must be positive, got {horizon}")
    if int(horizon) >= len(df):
        raise ValueError(f"horizon ({horizon}) must be smaller than the number of rows ({len(df)}).")
    data = df.sort_values(DATE_COL).reset_index(drop=True)
    cut = len(data) - int(horizon)
    return data.iloc[:cut].copy(), data.iloc[cut:].reset_index(drop=True)


def feature_names(df: pd.DataFrame) -> list:
    return [c for c in df.columns if c not in (TARGET_COL, DATE_COL)]


def split_xy(df: pd.DataFrame):
    """Feature matrix (all but date / target) and target series."""
    if TARGET_COL not in df.columns:
        raise KeyError(f"Target column '{TARGET_COL}' not in feature table.")
    return df[feature_names(df)].copy(), df[TARGET_COL].copy()


# ------------------ Input checks ------------------
def _check_schema(X: pd.DataFrame, y: pd.Series, feature_cols=None):
    """Ensure X has all required features and y matches the expected target."""
    if feature_cols is not None:
        missing_feats = [col for col in feature_cols if col not in X.columns]
        if missing_feats:
            raise ValueError(f"Missing required feature columns: {missing_feats}")

    if getattr(y, "name", None) != TARGET_COL:
        raise ValueError(
            f"Target column must be '{TARGET_COL}', but got '{getattr(y, 'name', None)}'."
        )


def _check_inputs(X: pd.DataFrame, y: pd.Series):
    """Type, shape, and NA checks before training/validation."""
    if not isinstance(X, pd.DataFrame):
        raise TypeError("X must be a pandas DataFrame.")
    if X.isnull().any().any():
        raise ValueError("X contains NaN values. Drop warm-up rows before training.")

    if X.select_dtypes(include=["object"]).shape[1] > 0:
        bad = X.select_dtypes(include=["object"]).columns.tolist()
        raise ValueError(
            f"Object dtype columns in X: {bad}. Encode them or convert to numeric."
        )

    if pd.isnull(y).any():
        raise ValueError("y contains NaN values.")
    if len(X) != len(y):
        raise ValueError(f"X and y length mismatch: {len(X)} vs {len(y)}.")

    return X, y


# ------------------ Training ------------------
def fit(
    X: pd.DataFrame,
    y: pd.Series,
    valid_frac: float = 0.2,
    random_state: int = SEED,
    save_model: bool = False,
    model_dir: str | None = None,
) -> str | XGBRegressor:
    """
    Train the XGBoost baseline. The last `valid_frac` of the (time-ordered) rows
    drive early stopping.

    If save_model=True:
        - Save pickle in model_dir (default: same dir as modeling.py).
        - Return the saved path (str).

    If save_model=False (default):
        - Return the trained model object directly.
    """
    _check_schema(X, y)
    X, y = _check_inputs(X, y)

    n_valid = max(1, int(round(len(X) * valid_frac)))
    if n_valid >= len(X):
        raise ValueError(f"Not enough rows ({len(X)}) for a validation tail of {n_valid}.")
    X_train, X_val = X.iloc[:-n_valid], X.iloc[-n_valid:]
    y_train, y_val = y.iloc[:-n_valid], y.iloc[-n_valid:]

    model = XGBRegressor(
        n_estimators=500,
        learning_rate=0.05,
        max_depth=6,
        subsample=0.8,
        colsample_bytree=0.8,
        min_child_weight=5,
        reg_alpha=0.2,
        reg_lambda=2.0,
        objective="reg:squarederror",
        random_state=random_state,
        n_jobs=-1,
        tree_method="hist",
        eval_metric="rmse",
        early_stopping_rounds=50,
        verbosity=0,
    )

    model.fit(
        X_train,
        y_train,
        eval_set=[(X_val, y_val)],
        verbose=False,
    )

    if save_model:
        filename = f"forecaster_xgboost_{datetime.now().strftime('%Y%m%d_%H%M%S')}.pkl"
        model_dir = model_dir or _THIS_DIR
        os.makedirs(model_dir, exist_ok=True)
        save_path = os.path.join(model_dir, filename)
        with open(save_path, "wb") as f:
            pickle.dump(model, f)
        return save_path
    return model


def load_pickled_model(model_ref: str):
    path = model_ref if os.path.isabs(model_ref) else os.path.join(_THIS_DIR, model_ref)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Model file not found: {path}")
    with open(path, "rb") as f:
        return pickle.load(f)


# ------------------ Validation ------------------
def validate(model, X: pd.DataFrame, y: pd.Series, name: str = "model"):
    """
    Evaluate a fitted regressor (or a pickled model filename) on X, y.
    Returns dict with r2, rmse, mape_pct.
    """
    if isinstance(model, str):
        name = model
        model = load_pickled_model(model)

    _check_schema(X, y)
    X, y = _check_inputs(X, y)

    y_pred = np.asarray(model.predict(X), dtype=float).ravel()

    r2 = float(r2_score(y, y_pred))
    rmse = float(np.sqrt(mean_squared_error(y, y_pred)))
    mape_val = mape(y, y_pred)

    print(f"Validation metrics for {name}:")
    print(f"  R^2  : {r2:.4f}")
    print(f"  RMSE : {rmse:.6f}")
    print(f"  MAPE : {mape_val:.2f}%")

    return {"r2": r2, "rmse": rmse, "mape_pct": mape_val}


def accuracy_table(y_true, y_pred, label: str, kind: str) -> pd.DataFrame:
    """One-row accuracy summary for a model on a split ('train' / 'test')."""
    row = {"model_desc": label, "type": kind, **accuracy_metrics(y_true, y_pred)}
    return pd.DataFrame([row])


def prediction_table(feature_table: pd.DataFrame, train_pred, test_pred) -> pd.DataFrame:
    """date, value, pred, type for the whole feature table (train rows then test rows)."""
    train_pred = np.asarray(train_pred, dtype=float).ravel()
    test_pred = np.asarray(test_pred, dtype=float).ravel()
    if len(train_pred) + len(test_pred) != len(feature_table):
        raise ValueError(
            f"Predictions ({len(train_pred)} + {len(test_pred)}) do not cover "
            f"the feature table ({len(feature_table)} rows)."
        )
    out = feature_table[[DATE_COL, TARGET_COL]].reset_index(drop=True).copy()
    out["pred"] = np.concatenate([train_pred, test_pred])
    out["type"] = ["train"] * len(train_pred) + ["test"] * len(test_pred)
    return out
