# plots.py
"""
Matplotlib figures for the series, the model fit and every explanation.
Each function returns a Figure and never calls plt.show(); the report writer
saves and closes them.
"""

import math

import numpy as np
import pandas as pd

# Matplotlib (headless)
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from utils.constants import DATE_COL, ID_COL, VALUE_COL
from utils.math_utils import ecdf

C_PRIMARY = "#2c3e50"
C_ACCENT = "#e31a1c"
C_POS = "#1b9e77"
C_NEG = "#d95f02"


# ------------------ Series ------------------
def plot_series_facets(df: pd.DataFrame, ncol: int = 2, max_series: int = 8):
    """One panel per series id (free y scales)."""
    ids = list(pd.unique(df[ID_COL]))[:max_series]
    if not ids:
        raise ValueError("No series to plot.")
    nrow = math.ceil(len(ids) / ncol)
    fig, axes = plt.subplots(nrow, ncol, figsize=(6 * ncol, 2.8 * nrow), squeeze=False)
    for ax, sid in zip(axes.ravel(), ids):
        part = df[df[ID_COL] == sid].sort_values(DATE_COL)
        ax.plot(part[DATE_COL], part[VALUE_COL], color=C_PRIMARY, linewidth=0.8)
        ax.set_title(str(sid), fontsize=10)
        ax.grid(alpha=0.3)
    for ax in axes.ravel()[len(ids):]:
        ax.set_visible(False)
    fig.tight_layout()
    return fig


def plot_series(series: pd.DataFrame, title: str = ""):
    fig, ax = plt.subplots(figsize=(11, 4))
    ax.plot(series[DATE_COL], series[VALUE_COL], color=C_PRIMARY, linewidth=0.8)
    ax.set_title(title)
    ax.set_xlabel(DATE_COL)
    ax.set_ylabel(VALUE_COL)
    ax.grid(alpha=0.3)
    fig.tight_layout()
    return fig


def plot_cv_plan(train: pd.DataFrame, test: pd.DataFrame):
    fig, ax = plt.subplots(figsize=(11, 4))
    ax.plot(train[DATE_COL], train[VALUE_COL], color=C_PRIMARY, linewidth=0.8, label="training")
    ax.plot(test[DATE_COL], test[VALUE_COL], color=C_ACCENT, linewidth=0.8, label="testing")
    ax.axvspan(test[DATE_COL].min(), test[DATE_COL].max(), color=C_ACCENT, alpha=0.08)
    ax.set_title("Time series split (cumulative)")
    ax.legend()
    ax.grid(alpha=0.3)
    fig.tight_layout()
    return fig


def plot_actual_vs_pred(pred_table: pd.DataFrame, kind: str = "test"):
    part = pred_table[pred_table["type"] == kind]
    fig, ax = plt.subplots(figsize=(11, 4))
    ax.plot(part[DATE_COL], part[VALUE_COL], color=C_PRIMARY, linewidth=0.9, label="value")
    ax.plot(part[DATE_COL], part["pred"], color=C_ACCENT, linewidth=0.9, label="pred")
    ax.set_title(f"Actual vs predicted ({kind})")
    ax.legend()
    ax.grid(alpha=0.3)
    fig.tight_layout()
    return fig


# ------------------ Global explanations ------------------
def plot_model_performance(mp, geom: str = "ecdf"):
    """Reverse ECDF of |residuals| (geom='ecdf') or a boxplot of |residuals|."""
    abs_res = mp.residuals["abs_residuals"].to_numpy()
    fig, ax = plt.subplots(figsize=(7, 4))
    if geom == "ecdf":
        pts = ecdf(abs_res)
        ax.step(pts["x"], 1.0 - pts["ecdf"] + 1.0 / len(pts), where="post", color=C_PRIMARY)
        ax.set_xlabel("|residual|")
        ax.set_ylabel("share of residuals >= x")
        ax.set_title(f"Distribution of |residual| ({mp.label})")
    elif geom == "boxplot":
        ax.boxplot(abs_res, orientation="horizontal")
        ax.scatter([np.sqrt(np.mean(abs_res ** 2))], [1], color=C_ACCENT, zorder=3, label="RMSE")
        ax.set_yticks([1])
        ax.set_yticklabels([mp.label])
        ax.set_xlabel("|residual|")
        ax.legend()
        ax.set_title("Boxplot of |residual|")
    else:
        raise ValueError(f"geom must be 'ecdf' or 'boxplot', got {geom!r}")
    ax.grid(alpha=0.3)
    fig.tight_layout()
    return fig


def plot_feature_importance(parts: pd.DataFrame, max_vars: int | None = None):
    full = float(parts.loc[parts["variable"] == "_full_model_", "dropout_loss"].iloc[0])
    table = parts[~parts["variable"].isin(["_full_model_", "_baseline_"])]
    table = table.sort_values("dropout_loss", ascending=False)
    if max_vars:
        table = table.head(max_vars)
    table = table.iloc[::-1]

    fig, ax = plt.subplots(figsize=(8, 0.35 * len(table) + 1.5))
    ax.barh(table["variable"], table["dropout_loss"] - full, left=full, color=C_PRIMARY,
            xerr=table["dropout_loss_std"].fillna(0.0))
    ax.axvline(full, color=C_ACCENT, linestyle="--", linewidth=1)
    ax.set_xlabel("RMSE loss after permutations")
    ax.set_title("Feature importance")
    ax.grid(alpha=0.3, axis="x")
    fig.tight_layout()
    return fig


def plot_profile(profile: pd.DataFrame):
    variables = list(pd.unique(profile["variable"]))
    fig, axes = plt.subplots(1, len(variables), figsize=(5 * len(variables), 4), squeeze=False)
    kind = profile["type"].iloc[0] if "type" in profile.columns else "profile"
    for ax, var in zip(axes.ravel(), variables):
        part = profile[profile["variable"] == var]
        ax.plot(part["x"], part["yhat"], color=C_PRIMARY, linewidth=2)
        ax.set_title(var)
        ax.set_xlabel(var)
        ax.set_ylabel("average prediction")
        ax.grid(alpha=0.3)
    fig.suptitle(f"{kind.capitalize()} profile")
    fig.tight_layout()
    return fig


def plot_diagnostics(diag: pd.DataFrame, variable: str = "y_hat"):
    if variable not in diag.columns:
        raise ValueError(f"Unknown diagnostics variable: {variable}")
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.scatter(diag[variable], diag["residuals"], s=14, color=C_PRIMARY, alpha=0.7)
    ax.axhline(0.0, color=C_ACCENT, linewidth=1)
    ax.set_xlabel(variable)
    ax.set_ylabel("residuals")
    ax.set_title(f"Residuals vs {variable}")
    ax.grid(alpha=0.3)
    fig.tight_layout()
    return fig


# ------------------ Local explanations ------------------
def plot_break_down(bd: pd.DataFrame):
    """Waterfall from the intercept to the prediction."""
    steps = bd[~bd["variable"].isin(["intercept", "prediction"])]
    intercept = float(bd.loc[bd["variable"] == "intercept", "contribution"].iloc[0])
    prediction = float(bd.loc[bd["variable"] == "prediction", "contribution"].iloc[0])

    labels = ["intercept"] + steps["variable"].tolist() + ["prediction"]
    fig, ax = plt.subplots(figsize=(8, 0.35 * len(labels) + 1.5))
    y = np.arange(len(labels))[::-1]
    ax.barh(y[0], intercept, color="#7f8c8d")
    start = intercept
    for yi, contrib in zip(y[1:-1], steps["contribution"]):
        ax.barh(yi, contrib, left=start, color=C_POS if contrib >= 0 else C_NEG)
        start += contrib
    ax.barh(y[-1], prediction, color=C_PRIMARY)
    ax.set_yticks(y)
    ax.set_yticklabels(labels, fontsize=8)
    ax.set_title("Break down")
    ax.grid(alpha=0.3, axis="x")
    fig.tight_layout()
    return fig


def _contribution_bars(labels, values, title: str, max_vars: int | None):
    table = pd.DataFrame({"label": labels, "value": values})
    table = table.reindex(table["value"].abs().sort_values(ascending=False).index)
    if max_vars:
        table = table.head(max_vars)
    table = table.iloc[::-1]
    fig, ax = plt.subplots(figsize=(8, 0.35 * len(table) + 1.5))
    colors = [C_POS if v >= 0 else C_NEG for v in table["value"]]
    ax.barh(table["label"], table["value"], color=colors)
    ax.axvline(0.0, color="black", linewidth=0.8)
    ax.set_title(title)
    ax.grid(alpha=0.3, axis="x")
    fig.tight_layout()
    return fig


def plot_shap(sv: pd.DataFrame, max_vars: int | None = 10):
    return _contribution_bars(sv["variable"], sv["contribution"], "Shapley values", max_vars)


def plot_lime(lime_df: pd.DataFrame, max_vars: int | None = None):
    return _contribution_bars(lime_df["condition"], lime_df["weight"], "LIME surrogate weights", max_vars)


def plot_ceteris_paribus(cp: pd.DataFrame, variables=None):
    variables = variables or list(pd.unique(cp["variable"]))
    fig, axes = plt.subplots(1, len(variables), figsize=(5 * len(variables), 4), squeeze=False)
    for ax, var in zip(axes.ravel(), variables):
        part = cp[cp["variable"] == var]
        ax.plot(part["x"], part["yhat"], color=C_PRIMARY, linewidth=2)
        ax.scatter(part["observed_x"].iloc[:1], part["observed_yhat"].iloc[:1], color=C_ACCENT, zorder=3)
        ax.set_title(var)
        ax.set_xlabel(var)
        ax.set_ylabel("prediction")
        ax.grid(alpha=0.3)
    fig.suptitle("Ceteris paribus profile")
    fig.tight_layout()
    return fig


def plot_stability(result, variables=None):
    """Neighbour profiles (grey) against the observation's profile, or residual ECDFs."""
    if result.profiles.empty:
        fig, ax = plt.subplots(figsize=(7, 4))
        for values, color, name in ((result.residuals_all, C_PRIMARY, "all"),
                                    (result.residuals_neighbors, C_ACCENT, "neighbors")):
            pts = ecdf(values)
            ax.step(pts["x"], pts["ecdf"], where="post", color=color, label=name)
        ax.set_xlabel("residuals")
        ax.set_title(f"Residuals of neighbors vs all (KS p = {result.ks_pvalue:.3f})")
        ax.legend()
        ax.grid(alpha=0.3)
        fig.tight_layout()
        return fig

    profiles = result.profiles
    variables = variables or list(pd.unique(profiles["variable"]))
    fig, axes = plt.subplots(1, len(variables), figsize=(5 * len(variables), 4), squeeze=False)
    for ax, var in zip(axes.ravel(), variables):
        part = profiles[profiles["variable"] == var]
        for nb, curve in part[part["neighbor"] >= 0].groupby("neighbor"):
            ax.plot(curve["x"], curve["yhat"], color="grey", alpha=0.3, linewidth=0.8)
        own = part[part["neighbor"] < 0]
        ax.plot(own["x"], own["yhat"], color=C_ACCENT, linewidth=2)
        ax.set_title(var)
        ax.set_xlabel(var)
        ax.grid(alpha=0.3)
    fig.suptitle("Stability: neighbor profiles")
    fig.tight_layout()
    return fig
