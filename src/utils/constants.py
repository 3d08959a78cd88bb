# utils/constants.py

SEED = 123

# Raw M4-style input schema
DATE_COL = "date"
ID_COL = "id"
TYPE_COL = "type"
PERIOD_COL = "period"
VALUE_COL = "value"
REQUIRED_COLUMNS = [ID_COL, TYPE_COL, PERIOD_COL, DATE_COL, VALUE_COL]

DEFAULT_FREQUENCY = "Hourly"
DEFAULT_SERIES_ID = "H413"

# Feature engineering constants
HORIZON = 48
LAG_PERIOD = 48
ROLLING_PERIODS = [12, 24]
FOURIER_PERIODS = [12, 24]
FOURIER_ORDER = 2

# H2O AutoML budget
AUTOML_PARAMS = {
    "max_runtime_secs": 120,
    "max_runtime_secs_per_model": 20,
    "max_models": 50,
    "nfolds": 5,
    "sort_metric": "RMSE",
    "seed": SEED,
}

DEFAULT_CONFIG = {
    "data": {
        "path": "data/m4.csv",
        "frequency": DEFAULT_FREQUENCY,
        "series_id": DEFAULT_SERIES_ID,
    },
    "features": {
        "lag_period": LAG_PERIOD,
        "rolling_periods": ROLLING_PERIODS,
        "fourier_periods": FOURIER_PERIODS,
        "fourier_order": FOURIER_ORDER,
    },
    "split": {"horizon": HORIZON},
    "model": {"backend": "h2o", "dir": "models"},
    "automl": {
        **AUTOML_PARAMS,
        "java_home": None,
        "max_mem_size": None,
        "nthreads": -1,
    },
    "explain": {
        "label": "h2o automl",
        "profile_variables": ["hour", "wday"],
        "observations": ["2017-07-23 02:00:00"],
        "max_vars": 10,
        "n_repeats": 10,
        "shap_background": 50,
        "shap_nsamples": "auto",
        "lime_features": 10,
        "lime_permutations": 1000,
        "neighbors": 50,
    },
    "report": {
        "out_dir": "reports",
        "formats": ["html", "pdf"],
        "title": "Explainable AutoML forecast",
    },
}
