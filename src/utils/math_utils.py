import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error


def standardize_vec(x) -> np.ndarray:
    """Center to mean 0 and scale to sample standard deviation 1."""
    x = np.asarray(x, dtype=float)
    sd = np.nanstd(x, ddof=1)
    if not np.isfinite(sd) or sd == 0:
        raise ValueError("Cannot standardize a constant or single-value vector.")
    return (x - np.nanmean(x)) / sd


def mape(y_true, y_pred) -> float:
    """Mean Absolute Percentage Error (MAPE) in %."""
    y_true = np.asarray(y_true).ravel()
    y_pred = np.asarray(y_pred).ravel()
    mask = y_true != 0
    if not np.any(mask):
        return np.nan
    return float(np.mean(np.abs((y_true[mask] - y_pred[mask]) / y_true[mask])) * 100.0)


def smape(y_true, y_pred) -> float:
    """Symmetric MAPE in %, rows where both values are 0 are skipped."""
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    denom = (np.abs(y_true) + np.abs(y_pred)) / 2.0
    mask = denom != 0
    if not np.any(mask):
        return np.nan
    return float(np.mean(np.abs(y_true[mask] - y_pred[mask]) / denom[mask]) * 100.0)


def mase(y_true, y_pred, m: int = 1) -> float:
    """Mean Absolute Scaled Error against the in-sample naive forecast of lag m."""
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    if len(y_true) <= m:
        return np.nan
    scale = np.mean(np.abs(y_true[m:] - y_true[:-m]))
    if scale == 0:
        return np.nan
    return float(np.mean(np.abs(y_true - y_pred)) / scale)


def rsq(y_true, y_pred) -> float:
    """Squared Pearson correlation between truth and prediction."""
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    if np.std(y_true) == 0 or np.std(y_pred) == 0:
        return np.nan
    return float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)


def accuracy_metrics(y_true, y_pred) -> dict:
    return {
        "mae": float(mean_absolute_error(y_true, y_pred)),
        "mape": mape(y_true, y_pred),
        "mase": mase(y_true, y_pred),
        "smape": smape(y_true, y_pred),
        "rmse": float(np.sqrt(mean_squared_error(y_true, y_pred))),
        "rsq": rsq(y_true, y_pred),
    }


def ecdf(values) -> pd.DataFrame:
    """Empirical CDF points of a 1-d sample, sorted ascending."""
    x = np.sort(np.asarray(values, dtype=float).ravel())
    return pd.DataFrame({"x": x, "ecdf": np.arange(1, len(x) + 1) / len(x)})
