# automl.py
"""
H2O AutoML backend.
- h2o_cluster(): scoped start / shutdown of the H2O JVM.
- fit_automl(): AutoML search over DRF/XRT, GLM, XGBoost, GBM, DeepLearning and
  StackedEnsembles with the run budget from the config.
- H2ORegressor: scikit-learn view over the leader so inspection / shap / lime can call it.
"""

import os
from contextlib import contextmanager

import h2o
import numpy as np
import pandas as pd
from h2o.automl import H2OAutoML
from sklearn.base import BaseEstimator, RegressorMixin

from utils.constants import AUTOML_PARAMS, DATE_COL
from utils.schema import TARGET_COL, CATEGORICAL_COLS


# ------------------ Cluster lifecycle ------------------
@contextmanager
def h2o_cluster(java_home: str | None = None, nthreads: int = -1, max_mem_size=None, show_progress: bool = False):
    """
    Start H2O for the duration of the block and always shut it down afterwards.

        with h2o_cluster(java_home="/usr/lib/jvm/jdk-17/"):
            aml = fit_automl(train)
    """
    if java_home:
        os.environ["JAVA_HOME"] = java_home
    h2o.init(nthreads=nthreads, max_mem_size=max_mem_size)
    if not show_progress:
        h2o.no_progress()
    try:
        yield h2o.cluster()
    finally:
        print("Shutting down H2O ...")
        h2o.cluster().shutdown(prompt=False)


# ------------------ Frames ------------------
def to_h2o_frame(df: pd.DataFrame, factor_cols=CATEGORICAL_COLS) -> "h2o.H2OFrame":
    """pandas -> H2OFrame; the date column is dropped, categorical columns become factors."""
    data = df.drop(columns=[DATE_COL], errors="ignore")
    frame = h2o.H2OFrame(data)
    for col in factor_cols or []:
        if col in data.columns:
            frame[col] = frame[col].asfactor()
    return frame


# ------------------ AutoML ------------------
def fit_automl(
    train: pd.DataFrame,
    target: str = TARGET_COL,
    exclude=(DATE_COL,),
    factor_cols=CATEGORICAL_COLS,
    **params,
) -> H2OAutoML:
    """
    Run H2O AutoML on a pandas training table.
    Keyword params override the AUTOML_PARAMS budget (max_runtime_secs, max_models, ...).
    """
    if target not in train.columns:
        raise KeyError(f"Target column '{target}' not in training data.")
    x_vars = [c for c in train.columns if c != target and c not in set(exclude)]
    if not x_vars:
        raise ValueError("No predictor columns left for AutoML.")

    settings = {**AUTOML_PARAMS, **{k: v for k, v in params.items() if v is not None}}
    settings.setdefault("verbosity", None)
    aml = H2OAutoML(**settings)

    train_h2o = to_h2o_frame(train, factor_cols=factor_cols)
    print(f"Running H2O AutoML on {len(train)} rows, {len(x_vars)} features "
          f"(max_runtime_secs={settings.get('max_runtime_secs')}, max_models={settings.get('max_models')})")
    aml.train(x=x_vars, y=target, training_frame=train_h2o)
    return aml


def leaderboard(aml) -> pd.DataFrame:
    return aml.leaderboard.as_data_frame()


def best_model(aml):
    return aml.leader


def performance(model, frame) -> dict:
    """H2O's own metrics for a model on an H2OFrame."""
    perf = model.model_performance(test_data=frame)
    return {"rmse": float(perf.rmse()), "mae": float(perf.mae()), "r2": float(perf.r2())}


def save_model(model, path: str) -> str:
    os.makedirs(path, exist_ok=True)
    return h2o.save_model(model, path=path, force=True)


def load_model(path: str):
    if not os.path.exists(path):
        raise FileNotFoundError(f"H2O model not found: {path}")
    return h2o.load_model(path)


# ------------------ scikit-learn adapter ------------------
class H2ORegressor(RegressorMixin, BaseEstimator):
    """
    Wrap a trained H2O model as a fitted scikit-learn regressor.
    fit() is a no-op: training happens in H2O AutoML.
    """

    def __init__(self, model=None, factor_cols=CATEGORICAL_COLS):
        self.model = model
        self.factor_cols = factor_cols

    def fit(self, X, y=None):
        self.n_features_in_ = X.shape[1]
        return self

    def __sklearn_is_fitted__(self):
        return self.model is not None

    def predict(self, X) -> np.ndarray:
        if self.model is None:
            raise ValueError("H2ORegressor has no H2O model attached.")
        if not isinstance(X, pd.DataFrame):
            raise TypeError("H2ORegressor.predict expects a pandas DataFrame.")
        frame = to_h2o_frame(X, factor_cols=self.factor_cols)
        pred = self.model.predict(frame).as_data_frame()
        return pred["predict"].to_numpy(dtype=float)
