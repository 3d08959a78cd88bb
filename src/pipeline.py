# pipeline.py
"""
Explainable AutoML forecasting pipeline for one hourly series.

CLI:
- Plot the series of a frequency and the selected id:
  python pipeline.py explore --config config/xai_ts.yaml

- Write the feature table:
  python pipeline.py features --out features.csv

- Train (H2O AutoML, or the XGBoost baseline without a JVM) and evaluate:
  python pipeline.py train --backend h2o

- Train, explain and write the HTML / PDF report:
  python pipeline.py explain --observations "2017-07-23 02:00:00" "2017-07-23 15:00:00"
"""

from __future__ import annotations

import contextlib
import os
import sys
from typing import Optional

import numpy as np
import pandas as pd

from data_loader import load_data, select_series
from explain.explainer import Explainer, model_performance, model_parts, model_diagnostics
from explain.profiles import model_profile, predict_profile
from explain.attributions import predict_parts, predict_surrogate
from explain.stability import predict_diagnostics
from models.modeling import (
    time_series_split, split_xy, fit as model_fit, validate as model_validate,
    accuracy_table, prediction_table, load_pickled_model,
)
from report import plots
from report.report import ReportSection, build_report

from utils.constants import AUTOML_PARAMS, DATE_COL, PERIOD_COL
from utils.feature_utils import build_feature_table, select_observation
from utils.io_utils import load_config, resolve_path, save_table

BACKENDS = ("h2o", "xgboost")


# ---------- Helpers ----------
def _load_series(cfg: dict, data_path: Optional[str] = None):
    path = resolve_path(data_path or cfg["data"]["path"])
    raw = load_data(path)
    series = select_series(raw, cfg["data"]["frequency"], cfg["data"]["series_id"])
    print(f"Loaded {len(raw)} rows, series {cfg['data']['series_id']}: {len(series)} rows")
    return raw, series


def _prepare(cfg: dict, data_path: Optional[str] = None):
    _, series = _load_series(cfg, data_path)
    feats = build_feature_table(series, cfg["features"])
    train, test = time_series_split(feats, int(cfg["split"]["horizon"]))
    print(f"Feature table: {feats.shape[0]} rows x {feats.shape[1]} cols "
          f"(train {len(train)}, test {len(test)})")
    return feats, train, test


def _check_backend(backend: str) -> str:
    if backend not in BACKENDS:
        raise ValueError(f"backend must be one of {BACKENDS}, got {backend!r}")
    return backend


def _backend_session(cfg: dict, backend: str):
    """H2O needs a running cluster for training and every prediction."""
    if backend != "h2o":
        return contextlib.nullcontext()
    from models.automl import h2o_cluster

    aml_cfg = cfg["automl"]
    return h2o_cluster(
        java_home=aml_cfg.get("java_home"),
        nthreads=aml_cfg.get("nthreads", -1),
        max_mem_size=aml_cfg.get("max_mem_size"),
    )


def _fit_model(cfg: dict, backend: str, train: pd.DataFrame, model_path: Optional[str] = None,
               test: Optional[pd.DataFrame] = None):
    """Returns a fitted sklearn-compatible regressor and backend extras (leaderboard, H2O metrics, saved path)."""
    extras = {}
    model_dir = resolve_path(cfg["model"]["dir"], must_exist=False)
    if backend == "xgboost":
        if model_path:
            return load_pickled_model(resolve_path(model_path)), extras
        X_train, y_train = split_xy(train)
        saved = model_fit(X_train, y_train, save_model=True, model_dir=model_dir)
        print(f"✅ Saved model as: {saved}")
        extras["model_path"] = saved
        return load_pickled_model(saved), extras

    from models.automl import (
        H2ORegressor, fit_automl, leaderboard, best_model, performance, save_model, load_model,
        to_h2o_frame,
    )

    if model_path:
        return H2ORegressor(load_model(resolve_path(model_path))), extras

    aml_cfg = cfg["automl"]
    params = {k: aml_cfg[k] for k in AUTOML_PARAMS if k in aml_cfg}
    aml = fit_automl(train, **params)
    extras["leaderboard"] = leaderboard(aml)
    print(extras["leaderboard"].head(10).to_string(index=False))

    leader = best_model(aml)
    splits = [("train", train)] + ([("test", test)] if test is not None else [])
    extras["h2o_performance"] = pd.DataFrame(
        [{"type": kind, **performance(leader, to_h2o_frame(part))} for kind, part in splits]
    )
    print(extras["h2o_performance"].to_string(index=False))
    extras["model_path"] = save_model(leader, model_dir)
    print(f"✅ Saved H2O leader to: {extras['model_path']}")
    return H2ORegressor(leader), extras


def evaluate_fit(model, feats: pd.DataFrame, train: pd.DataFrame, test: pd.DataFrame, label: str):
    """Predictions over train + test and the accuracy table for both splits."""
    X_train, y_train = split_xy(train)
    X_test, y_test = split_xy(test)
    train_pred = np.asarray(model.predict(X_train), dtype=float)
    test_pred = np.asarray(model.predict(X_test), dtype=float)

    model_validate(model, X_test, y_test, name=label)
    accuracy = pd.concat([
        accuracy_table(y_train, train_pred, label, "train"),
        accuracy_table(y_test, test_pred, label, "test"),
    ], ignore_index=True)
    return prediction_table(feats, train_pred, test_pred), accuracy


def explain_model(model, test: pd.DataFrame, cfg: dict, label: str, observations=None) -> list:
    """Global and local explanations of `model` on the test set, as report sections."""
    ex_cfg = cfg["explain"]
    variables = list(ex_cfg["profile_variables"])
    max_vars = int(ex_cfg["max_vars"])
    X_test, y_test = split_xy(test)
    explainer = Explainer(model, X_test, y_test, label=label)
    print(f"Explainer: {explainer}")

    sections = []

    # ---- global ----
    mp = model_performance(explainer)
    sections.append(ReportSection(
        "Model performance",
        figures=[("Reverse ECDF of |residual|", plots.plot_model_performance(mp, "ecdf")),
                 ("Boxplot of |residual|", plots.plot_model_performance(mp, "boxplot"))],
        tables=[("Measures", pd.DataFrame([{"label": label, **mp.measures}]))],
    ))

    fi = model_parts(explainer, n_repeats=int(ex_cfg["n_repeats"]))
    sections.append(ReportSection(
        "Feature importance",
        figures=[("All variables", plots.plot_feature_importance(fi)),
                 (f"Top {max_vars}", plots.plot_feature_importance(fi, max_vars=max_vars))],
        tables=[("Permutation importance (RMSE)", fi)],
    ))

    pdp = model_profile(explainer, variables, type="partial")
    ale = model_profile(explainer, variables, type="accumulated")
    sections.append(ReportSection(
        "Variable response",
        figures=[("Partial dependence", plots.plot_profile(pdp)),
                 ("Accumulated local effects", plots.plot_profile(ale))],
    ))

    diag = model_diagnostics(explainer)
    sections.append(ReportSection(
        "Model diagnostics",
        figures=[("Residuals vs fitted", plots.plot_diagnostics(diag, "y_hat"))]
        + [(f"Residuals vs {v}", plots.plot_diagnostics(diag, v)) for v in variables[:1]],
    ))

    # ---- local ----
    if not observations:
        observations = [test[DATE_COL].iloc[-1]]
    for ts in observations:
        obs = select_observation(test, ts)
        stamp = pd.Timestamp(ts).strftime("%Y-%m-%d %H:%M")
        print(f"Explaining prediction at {stamp}")

        bd = predict_parts(explainer, obs, type="break_down")
        sv = predict_parts(explainer, obs, type="shap",
                           background=int(ex_cfg["shap_background"]), nsamples=ex_cfg["shap_nsamples"])
        lime_df = predict_surrogate(explainer, obs, n_features=int(ex_cfg["lime_features"]),
                                    n_permutations=int(ex_cfg["lime_permutations"]))
        cp = predict_profile(explainer, obs, variables)
        stab = predict_diagnostics(explainer, obs, variables=variables, neighbors=int(ex_cfg["neighbors"]))

        sections.append(ReportSection(
            f"Local explanation at {stamp}",
            text=(f"Prediction {bd['contribution'].iloc[-1]:.4f}; "
                  f"SHAP expected value {sv.attrs['expected_value']:.4f}; "
                  f"LIME intercept {lime_df.attrs['intercept']:.4f}."),
            figures=[("Break down", plots.plot_break_down(bd)),
                     ("Shapley values", plots.plot_shap(sv, max_vars=max_vars)),
                     ("LIME", plots.plot_lime(lime_df)),
                     ("Ceteris paribus", plots.plot_ceteris_paribus(cp, variables)),
                     ("Stability", plots.plot_stability(stab, variables))],
            tables=[("Break down", bd.drop(columns=["label"])),
                    ("LIME", lime_df.drop(columns=["label"])),
                    ("Neighborhood residuals", stab.summary())],
        ))
    return sections


def _data_sections(feats, train, test, pred_table, accuracy, extras, series_id) -> list:
    sections = [ReportSection(
        "Data",
        text=f"Series {series_id}: {len(feats)} modeled rows, {len(test)} test rows.",
        figures=[("Standardized series", plots.plot_series(feats, series_id)),
                 ("Train / test split", plots.plot_cv_plan(train, test))],
    )]
    tables = [("Accuracy", accuracy)]
    if "leaderboard" in extras:
        tables.insert(0, ("AutoML leaderboard (top 10)", extras["leaderboard"].head(10)))
    if "h2o_performance" in extras:
        tables.append(("H2O performance of the leader", extras["h2o_performance"]))
    sections.append(ReportSection(
        "Model",
        figures=[("Train", plots.plot_actual_vs_pred(pred_table, "train")),
                 ("Test", plots.plot_actual_vs_pred(pred_table, "test"))],
        tables=tables,
    ))
    return sections


# ---------- Commands ----------
def cmd_explore(cfg: dict, data_path: Optional[str] = None, out_dir: Optional[str] = None):
    raw, series = _load_series(cfg, data_path)
    freq = cfg["data"]["frequency"]
    sid = cfg["data"]["series_id"]
    sections = [ReportSection(
        f"{freq} series",
        figures=[(f"All {freq} series", plots.plot_series_facets(raw[raw[PERIOD_COL] == freq])),
                 (sid, plots.plot_series(series, sid))],
    )]
    out_dir = out_dir or resolve_path(cfg["report"]["out_dir"], must_exist=False)
    paths = build_report(sections, out_dir, title=f"{freq} series overview",
                         formats=cfg["report"]["formats"], basename="explore")
    for p in paths:
        print(f"✅ Saved: {p}")
    return paths


def cmd_features(cfg: dict, data_path: Optional[str] = None, out_csv: Optional[str] = None):
    _, series = _load_series(cfg, data_path)
    feats = build_feature_table(series, cfg["features"])
    print(feats.head().to_string(index=False))
    out_csv = out_csv or os.path.join(resolve_path(cfg["report"]["out_dir"], must_exist=False), "features.csv")
    os.makedirs(os.path.dirname(os.path.abspath(out_csv)), exist_ok=True)
    feats.to_csv(out_csv, index=False)
    print(f"✅ Feature table saved to: {out_csv}")
    return feats


def cmd_train(cfg: dict, data_path: Optional[str] = None, backend: str = "h2o"):
    backend = _check_backend(backend)
    feats, train, test = _prepare(cfg, data_path)
    label = cfg["explain"]["label"] if backend == "h2o" else "xgboost"

    with _backend_session(cfg, backend):
        model, extras = _fit_model(cfg, backend, train, test=test)
        pred_table, accuracy = evaluate_fit(model, feats, train, test, label)

    print(accuracy.to_string(index=False))
    out_dir = resolve_path(cfg["report"]["out_dir"], must_exist=False)
    print(f"✅ Predictions saved to: {save_table(pred_table, out_dir, 'predictions')}")
    print(f"✅ Accuracy saved to: {save_table(accuracy, out_dir, 'accuracy')}")
    if "leaderboard" in extras:
        print(f"✅ Leaderboard saved to: {save_table(extras['leaderboard'], out_dir, 'leaderboard')}")
    if "h2o_performance" in extras:
        print(f"✅ H2O performance saved to: {save_table(extras['h2o_performance'], out_dir, 'h2o_performance')}")
    return pred_table, accuracy


def cmd_explain(cfg: dict, data_path: Optional[str] = None, backend: str = "h2o",
                observations=None, model_path: Optional[str] = None):
    backend = _check_backend(backend)
    feats, train, test = _prepare(cfg, data_path)
    label = cfg["explain"]["label"] if backend == "h2o" else "xgboost"
    observations = observations if observations is not None else cfg["explain"]["observations"]

    with _backend_session(cfg, backend):
        model, extras = _fit_model(cfg, backend, train, model_path=model_path, test=test)
        pred_table, accuracy = evaluate_fit(model, feats, train, test, label)
        sections = _data_sections(feats, train, test, pred_table, accuracy, extras,
                                  cfg["data"]["series_id"])
        sections += explain_model(model, test, cfg, label, observations)

    out_dir = resolve_path(cfg["report"]["out_dir"], must_exist=False)
    paths = build_report(sections, out_dir, title=cfg["report"]["title"],
                         formats=cfg["report"]["formats"], basename="xai_report")
    for p in paths:
        print(f"✅ Report saved to: {p}")
    return paths


# ---------- CLI ----------
def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description="Explainable AutoML forecasting pipeline")
    parser.add_argument("--config", default=None, help="YAML config (default: config/xai_ts.yaml)")
    parser.add_argument("--data", default=None, help="CSV path overriding data.path")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_exp = sub.add_parser("explore", help="Plot the series")
    p_exp.add_argument("--out-dir", default=None)

    p_feat = sub.add_parser("features", help="Write the feature table")
    p_feat.add_argument("--out", default=None)

    p_train = sub.add_parser("train", help="Train and evaluate model")
    p_train.add_argument("--backend", default=None, choices=BACKENDS)

    p_xai = sub.add_parser("explain", help="Train, explain and write the report")
    p_xai.add_argument("--backend", default=None, choices=BACKENDS)
    p_xai.add_argument("--observations", nargs="*", default=None, help="Timestamps to explain locally")
    p_xai.add_argument("--model-path", default=None, help="Reuse a saved model instead of training")

    args = parser.parse_args(argv)
    cfg = load_config(args.config)
    backend = getattr(args, "backend", None) or cfg["model"]["backend"]

    if args.cmd == "explore":
        cmd_explore(cfg, args.data, args.out_dir)
    elif args.cmd == "features":
        cmd_features(cfg, args.data, args.out)
    elif args.cmd == "train":
        cmd_train(cfg, args.data, backend)
    elif args.cmd == "explain":
        cmd_explain(cfg, args.data, backend, args.observations, args.model_path)
    else:
        parser.print_help()


def run(argv=None):
    """Console entry point: errors are printed, not traced."""
    try:
        main(argv)
    except Exception as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
