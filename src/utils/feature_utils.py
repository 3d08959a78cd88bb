import pandas as pd
from features import generate_feature
from utils.constants import DATE_COL
from utils.schema import TARGET_COL, feature_columns


def build_feature_table(series: pd.DataFrame, feature_cfg: dict) -> pd.DataFrame:
    """generate_feature() driven by the `features` section of the config."""
    feats = generate_feature(
        series,
        lag_period=int(feature_cfg["lag_period"]),
        rolling_periods=list(feature_cfg["rolling_periods"]),
        fourier_periods=list(feature_cfg["fourier_periods"]),
        fourier_order=int(feature_cfg["fourier_order"]),
    )
    expected = feature_columns(
        int(feature_cfg["lag_period"]),
        list(feature_cfg["rolling_periods"]),
        list(feature_cfg["fourier_periods"]),
        int(feature_cfg["fourier_order"]),
    )
    missing = [c for c in expected if c not in feats.columns]
    if missing:
        raise RuntimeError(f"Feature generation missing columns: {missing}")
    return feats[[DATE_COL, TARGET_COL] + expected]


def select_observation(feature_table: pd.DataFrame, timestamp) -> pd.DataFrame:
    """The single feature row at `timestamp` (date and target dropped)."""
    ts = pd.Timestamp(timestamp)
    rows = feature_table[feature_table[DATE_COL] == ts]
    if rows.empty:
        first, last = feature_table[DATE_COL].min(), feature_table[DATE_COL].max()
        raise KeyError(f"No row at {ts}; available range is {first} .. {last}")
    return rows.drop(columns=[DATE_COL, TARGET_COL]).iloc[[0]].reset_index(drop=True)
