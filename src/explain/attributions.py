# attributions.py
"""
Local attributions for a single prediction.
- break_down: sequential conditioning, variables ordered by single-variable effect.
- shap: Shapley values from shap.KernelExplainer on a background sample.
- predict_surrogate(): LIME surrogate from lime.lime_tabular.
"""

import numpy as np
import pandas as pd
import shap
from lime.lime_tabular import LimeTabularExplainer

from explain.explainer import Explainer, _check_observation
from utils.constants import SEED

PARTS_TYPES = ("break_down", "shap")


def _format_value(v) -> str:
    v = float(v)
    return f"{v:.0f}" if v.is_integer() else f"{v:.3g}"


def _break_down(explainer: Explainer, obs: pd.DataFrame) -> pd.DataFrame:
    data = explainer.data
    baseline = float(explainer.y_hat.mean())

    # single-variable effect decides the order
    effects = {}
    for col in explainer.columns:
        shifted = data.copy()
        shifted[col] = obs.loc[0, col]
        effects[col] = float(explainer.predict(shifted).mean()) - baseline
    order = sorted(effects, key=lambda c: abs(effects[c]), reverse=True)

    rows = [{"variable": "intercept", "variable_name": "", "variable_value": "", "contribution": baseline,
             "cumulative": baseline}]
    current = data.copy()
    prev = baseline
    for col in order:
        current[col] = obs.loc[0, col]
        mean_pred = float(explainer.predict(current).mean())
        rows.append({
            "variable": f"{col} = {_format_value(obs.loc[0, col])}",
            "variable_name": col,
            "variable_value": _format_value(obs.loc[0, col]),
            "contribution": mean_pred - prev,
            "cumulative": mean_pred,
        })
        prev = mean_pred

    prediction = float(explainer.predict(obs)[0])
    rows.append({"variable": "prediction", "variable_name": "", "variable_value": "",
                 "contribution": prediction, "cumulative": prediction})
    return pd.DataFrame(rows)


def _shap(explainer: Explainer, obs: pd.DataFrame, background: int, nsamples, random_state: int) -> pd.DataFrame:
    bg = shap.sample(explainer.data, min(background, len(explainer.data)), random_state=random_state)
    kernel = shap.KernelExplainer(lambda X: explainer.predict(X), bg)
    values = np.asarray(kernel.shap_values(obs, nsamples=nsamples, silent=True), dtype=float).reshape(-1)

    out = pd.DataFrame({
        "variable": [f"{c} = {_format_value(obs.loc[0, c])}" for c in explainer.columns],
        "variable_name": explainer.columns,
        "variable_value": [_format_value(obs.loc[0, c]) for c in explainer.columns],
        "contribution": values,
    })
    out = out.reindex(out["contribution"].abs().sort_values(ascending=False).index).reset_index(drop=True)
    out.attrs["expected_value"] = float(np.ravel(kernel.expected_value)[0])
    out.attrs["prediction"] = float(explainer.predict(obs)[0])
    return out


def predict_parts(
    explainer: Explainer,
    new_observation,
    type: str = "break_down",
    background: int = 50,
    nsamples="auto",
    random_state: int = SEED,
) -> pd.DataFrame:
    """
    Attribute one prediction to the features.
    break_down rows: intercept, one per variable, prediction (contributions add up to the prediction).
    shap rows: one per variable; attrs carry expected_value and prediction.
    """
    if type not in PARTS_TYPES:
        raise ValueError(f"type must be one of {PARTS_TYPES}, got {type!r}")
    obs = _check_observation(explainer, new_observation)

    if type == "break_down":
        out = _break_down(explainer, obs)
    else:
        out = _shap(explainer, obs, background, nsamples, random_state)
    out["label"] = explainer.label
    out.attrs["type"] = type
    return out


def predict_surrogate(
    explainer: Explainer,
    new_observation,
    n_features: int = 10,
    n_permutations: int = 1000,
    random_state: int = SEED,
) -> pd.DataFrame:
    """
    LIME: fit a local linear surrogate around the observation.
    Returns one row per selected condition with its weight; attrs carry the
    surrogate intercept and the model prediction.
    """
    obs = _check_observation(explainer, new_observation)
    columns = explainer.columns
    categorical_idx = [columns.index(c) for c in explainer.categorical]

    lime_explainer = LimeTabularExplainer(
        training_data=explainer.data.to_numpy(dtype=float),
        feature_names=columns,
        categorical_features=categorical_idx,
        mode="regression",
        discretize_continuous=True,
        random_state=random_state,
    )
    explanation = lime_explainer.explain_instance(
        obs.to_numpy(dtype=float)[0],
        explainer.predict,
        num_features=min(n_features, len(columns)),
        num_samples=n_permutations,
    )

    out = pd.DataFrame(explanation.as_list(), columns=["condition", "weight"])
    out["label"] = explainer.label
    out.attrs["intercept"] = float(explanation.intercept[1])
    out.attrs["prediction"] = float(explanation.predicted_value)
    out.attrs["type"] = "lime"
    return out
