# explainer.py
"""
Model-agnostic explainer for a fitted regressor.
- Explainer bundles model, explanation data (features), target and a label.
- model_performance(): residuals and fit measures.
- model_parts(): permutation feature importance (RMSE loss) via sklearn.inspection.
- model_diagnostics(): residual table for residual-vs-fitted / residual-vs-variable plots.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.inspection import permutation_importance
from sklearn.metrics import mean_absolute_error, mean_squared_error, median_absolute_error, r2_score

from utils.constants import SEED
from utils.schema import CATEGORICAL_COLS


class Explainer:
    """
    Wraps any fitted regressor with a `predict(DataFrame)` method
    (XGBRegressor, sklearn estimators, models.automl.H2ORegressor).
    """

    def __init__(self, model, data: pd.DataFrame, y, label: str = None, categorical=CATEGORICAL_COLS):
        if not isinstance(data, pd.DataFrame):
            raise TypeError("data must be a pandas DataFrame.")
        if data.empty:
            raise ValueError("data must contain at least one row.")
        y = np.asarray(y, dtype=float).ravel()
        if len(y) != len(data):
            raise ValueError(f"data and y length mismatch: {len(data)} vs {len(y)}.")
        if not hasattr(model, "predict"):
            raise TypeError("model must expose predict().")

        self.model = model
        self.data = data.reset_index(drop=True)
        self.y = y
        self.label = label or type(model).__name__
        self.categorical = [c for c in (categorical or []) if c in data.columns]
        self._y_hat = None

    @property
    def columns(self) -> list:
        return list(self.data.columns)

    def as_frame(self, X) -> pd.DataFrame:
        """Rebuild a feature DataFrame (column order and dtypes of data) from array input."""
        if isinstance(X, pd.DataFrame):
            return X[self.columns]
        X = np.atleast_2d(np.asarray(X))
        frame = pd.DataFrame(X, columns=self.columns)
        # samplers (lime, shap) may draw fractional values for integer columns
        for col, dtype in self.data.dtypes.items():
            if pd.api.types.is_integer_dtype(dtype):
                frame[col] = np.rint(frame[col].astype(float))
        return frame.astype(self.data.dtypes.to_dict())

    def predict(self, X) -> np.ndarray:
        return np.asarray(self.model.predict(self.as_frame(X)), dtype=float).ravel()

    @property
    def y_hat(self) -> np.ndarray:
        if self._y_hat is None:
            self._y_hat = self.predict(self.data)
        return self._y_hat

    @property
    def residuals(self) -> np.ndarray:
        return self.y - self.y_hat

    def __repr__(self):
        return f"Explainer(label={self.label!r}, rows={len(self.data)}, features={len(self.columns)})"


def _check_observation(explainer: Explainer, new_observation) -> pd.DataFrame:
    """A single-row feature frame in the explainer's column layout."""
    if isinstance(new_observation, pd.Series):
        new_observation = new_observation.to_frame().T
    if not isinstance(new_observation, pd.DataFrame):
        raise TypeError("new_observation must be a pandas DataFrame or Series.")
    if len(new_observation) != 1:
        raise ValueError(f"new_observation must have exactly one row, got {len(new_observation)}.")
    missing = [c for c in explainer.columns if c not in new_observation.columns]
    if missing:
        raise KeyError(f"new_observation is missing feature columns: {missing}")
    obs = new_observation[explainer.columns].reset_index(drop=True)
    return obs.astype(explainer.data.dtypes.to_dict())


def _check_variables(explainer: Explainer, variables) -> list:
    if variables is None:
        return explainer.columns
    if isinstance(variables, str):
        variables = [variables]
    unknown = [v for v in variables if v not in explainer.columns]
    if unknown:
        raise ValueError(f"Unknown variables: {unknown}")
    return list(variables)


# ------------------ Performance ------------------
def _rmse(y_true, y_pred) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


@dataclass
class ModelPerformance:
    label: str
    measures: dict
    residuals: pd.DataFrame


def model_performance(explainer: Explainer) -> ModelPerformance:
    y, y_hat = explainer.y, explainer.y_hat
    res = y - y_hat
    measures = {
        "mse": float(mean_squared_error(y, y_hat)),
        "rmse": _rmse(y, y_hat),
        "r2": float(r2_score(y, y_hat)),
        "mae": float(mean_absolute_error(y, y_hat)),
        "mad": float(median_absolute_error(y, y_hat)),
    }
    residuals = pd.DataFrame({"y": y, "y_hat": y_hat, "residuals": res, "abs_residuals": np.abs(res)})
    return ModelPerformance(explainer.label, measures, residuals)


# ------------------ Feature importance ------------------
def model_parts(explainer: Explainer, n_repeats: int = 10, random_state: int = SEED) -> pd.DataFrame:
    """
    Permutation importance on RMSE.
    dropout_loss = RMSE after permuting the variable; _full_model_ is the unpermuted RMSE,
    _baseline_ the RMSE against shuffled predictions.
    """
    full_loss = _rmse(explainer.y, explainer.y_hat)
    result = permutation_importance(
        explainer.model,
        explainer.data,
        explainer.y,
        scoring="neg_root_mean_squared_error",
        n_repeats=n_repeats,
        random_state=random_state,
    )

    # importances = score(full) - score(permuted) = rmse(permuted) - rmse(full)
    table = pd.DataFrame({
        "variable": explainer.columns,
        "dropout_loss": full_loss + result.importances_mean,
        "dropout_loss_std": result.importances_std,
    }).sort_values("dropout_loss", ascending=False)

    rng = np.random.default_rng(random_state)
    baseline = np.mean([_rmse(explainer.y, rng.permutation(explainer.y_hat)) for _ in range(n_repeats)])
    extra = pd.DataFrame({
        "variable": ["_full_model_", "_baseline_"],
        "dropout_loss": [full_loss, float(baseline)],
        "dropout_loss_std": [0.0, np.nan],
    })
    out = pd.concat([extra.iloc[[0]], table, extra.iloc[[1]]], ignore_index=True)
    out["label"] = explainer.label
    return out


# ------------------ Diagnostics ------------------
def model_diagnostics(explainer: Explainer) -> pd.DataFrame:
    out = explainer.data.copy()
    out["y"] = explainer.y
    out["y_hat"] = explainer.y_hat
    out["residuals"] = explainer.residuals
    out["abs_residuals"] = np.abs(out["residuals"])
    out["label"] = explainer.label
    return out
