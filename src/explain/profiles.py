# profiles.py
"""
Variable response profiles.
- model_profile(type="partial"): partial dependence through sklearn.inspection.partial_dependence.
- model_profile(type="accumulated"): accumulated local effects over quantile bins.
- predict_profile(): ceteris-paribus profile of a single observation.
All return long DataFrames: one row per (variable, grid value).
"""

import numpy as np
import pandas as pd
from sklearn.inspection import partial_dependence

from explain.explainer import Explainer, _check_observation, _check_variables

PROFILE_TYPES = ("partial", "accumulated")


def variable_grid(values, grid_points: int = 101) -> np.ndarray:
    """Unique values when there are few of them, else an even grid over the observed range."""
    values = np.asarray(values, dtype=float)
    uniq = np.unique(values[np.isfinite(values)])
    if len(uniq) <= grid_points:
        return uniq
    return np.linspace(uniq.min(), uniq.max(), grid_points)


def _partial(explainer: Explainer, variable: str, grid_points: int) -> pd.DataFrame:
    X = explainer.data.copy()
    X[variable] = X[variable].astype(float)
    pd_result = partial_dependence(
        explainer.model,
        X,
        [variable],
        kind="average",
        method="brute",
        percentiles=(0.0, 1.0),
        grid_resolution=grid_points,
    )
    return pd.DataFrame({
        "variable": variable,
        "x": np.asarray(pd_result["grid_values"][0], dtype=float),
        "yhat": np.asarray(pd_result["average"][0], dtype=float),
    })


def _accumulated(explainer: Explainer, variable: str, grid_points: int) -> pd.DataFrame:
    x = explainer.data[variable].to_numpy(dtype=float)
    dtype = explainer.data[variable].dtype
    # integer features keep observed values as bin edges
    method = "inverted_cdf" if np.issubdtype(dtype, np.integer) else "linear"
    edges = np.unique(np.quantile(x, np.linspace(0.0, 1.0, grid_points + 1), method=method))
    if len(edges) < 2:
        # constant variable: no local effect
        return pd.DataFrame({"variable": variable, "x": edges, "yhat": [explainer.y_hat.mean()]})

    # bin k holds edges[k] < x <= edges[k+1]; the minimum falls in bin 0
    bins = np.clip(np.digitize(x, edges[1:-1], right=True), 0, len(edges) - 2)

    lower = explainer.data.copy()
    upper = explainer.data.copy()
    lower[variable] = edges[bins].astype(dtype)
    upper[variable] = edges[bins + 1].astype(dtype)
    diffs = explainer.predict(upper) - explainer.predict(lower)

    n_bins = len(edges) - 1
    counts = np.bincount(bins, minlength=n_bins)
    sums = np.bincount(bins, weights=diffs, minlength=n_bins)
    local = np.divide(sums, counts, out=np.zeros(n_bins), where=counts > 0)
    ale = np.concatenate([[0.0], np.cumsum(local)])

    # center: mean effect over the data is zero, then shift to the mean prediction
    mid = (ale[:-1] + ale[1:]) / 2.0
    ale = ale - np.sum(mid * counts) / counts.sum()
    return pd.DataFrame({"variable": variable, "x": edges, "yhat": ale + explainer.y_hat.mean()})


def model_profile(explainer: Explainer, variables=None, type: str = "partial", grid_points: int = 101) -> pd.DataFrame:
    """Global profile (partial dependence or accumulated local effects) per variable."""
    if type not in PROFILE_TYPES:
        raise ValueError(f"type must be one of {PROFILE_TYPES}, got {type!r}")
    variables = _check_variables(explainer, variables)

    builder = _partial if type == "partial" else _accumulated
    frames = [builder(explainer, v, grid_points) for v in variables]
    out = pd.concat(frames, ignore_index=True)
    out["type"] = type
    out["label"] = explainer.label
    return out


def predict_profile(explainer: Explainer, new_observation, variables=None, grid_points: int = 101) -> pd.DataFrame:
    """
    Ceteris-paribus: vary one variable over its grid, every other feature fixed
    at the observation's value.
    """
    obs = _check_observation(explainer, new_observation)
    variables = _check_variables(explainer, variables)
    observed_yhat = float(explainer.predict(obs)[0])

    frames = []
    for v in variables:
        grid = variable_grid(explainer.data[v], grid_points)
        grid = np.unique(np.append(grid, float(obs.loc[0, v])))
        profile = pd.concat([obs] * len(grid), ignore_index=True)
        profile[v] = grid.astype(explainer.data[v].dtype)
        frames.append(pd.DataFrame({
            "variable": v,
            "x": grid,
            "yhat": explainer.predict(profile),
            "observed_x": float(obs.loc[0, v]),
            "observed_yhat": observed_yhat,
        }))
    out = pd.concat(frames, ignore_index=True)
    out["label"] = explainer.label
    return out
