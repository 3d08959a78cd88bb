# stability.py
"""
Local stability diagnostics for one prediction.
Compares the residuals of the observation's nearest neighbours with all residuals
(two-sample KS test) and, optionally, the ceteris-paribus profiles of those neighbours.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy.stats import ks_2samp
from sklearn.neighbors import NearestNeighbors
from sklearn.preprocessing import StandardScaler

from explain.explainer import Explainer, _check_observation, _check_variables
from explain.profiles import predict_profile


@dataclass
class StabilityResult:
    label: str
    neighbors: pd.DataFrame
    residuals_all: np.ndarray
    residuals_neighbors: np.ndarray
    ks_statistic: float
    ks_pvalue: float
    profiles: pd.DataFrame = field(default_factory=pd.DataFrame)

    def summary(self) -> pd.DataFrame:
        return pd.DataFrame([{
            "label": self.label,
            "neighbors": len(self.neighbors),
            "mean_residual_all": float(np.mean(self.residuals_all)),
            "mean_residual_neighbors": float(np.mean(self.residuals_neighbors)),
            "ks_statistic": self.ks_statistic,
            "ks_pvalue": self.ks_pvalue,
        }])


def nearest_neighbors(explainer: Explainer, obs: pd.DataFrame, neighbors: int) -> pd.DataFrame:
    """Rows of the explanation data closest to obs in standardized feature space."""
    n = min(int(neighbors), len(explainer.data))
    if n < 1:
        raise ValueError(f"neighbors must be positive, got {neighbors}")
    scaler = StandardScaler().fit(explainer.data.to_numpy(dtype=float))
    nn = NearestNeighbors(n_neighbors=n).fit(scaler.transform(explainer.data.to_numpy(dtype=float)))
    dist, idx = nn.kneighbors(scaler.transform(obs.to_numpy(dtype=float)))
    out = explainer.data.iloc[idx[0]].copy()
    out["distance"] = dist[0]
    out["y"] = explainer.y[idx[0]]
    out["y_hat"] = explainer.y_hat[idx[0]]
    out["residuals"] = out["y"] - out["y_hat"]
    return out


def predict_diagnostics(explainer: Explainer, new_observation, variables=None, neighbors: int = 50,
                        grid_points: int = 101) -> StabilityResult:
    obs = _check_observation(explainer, new_observation)
    near = nearest_neighbors(explainer, obs, neighbors)

    residuals_all = explainer.residuals
    residuals_near = near["residuals"].to_numpy(dtype=float)
    ks = ks_2samp(residuals_near, residuals_all)

    profiles = pd.DataFrame()
    if variables is not None:
        variables = _check_variables(explainer, variables)
        frames = []
        for i, (row_id, row) in enumerate(near.iterrows()):
            cp = predict_profile(explainer, near.loc[[row_id], explainer.columns], variables, grid_points)
            cp["neighbor"] = i
            cp["residual"] = row["residuals"]
            frames.append(cp)
        observed = predict_profile(explainer, obs, variables, grid_points)
        observed["neighbor"] = -1
        observed["residual"] = np.nan
        frames.append(observed)
        profiles = pd.concat(frames, ignore_index=True)

    return StabilityResult(
        label=explainer.label,
        neighbors=near.reset_index(drop=True),
        residuals_all=residuals_all,
        residuals_neighbors=residuals_near,
        ks_statistic=float(ks.statistic),
        ks_pvalue=float(ks.pvalue),
        profiles=profiles,
    )
