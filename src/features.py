# features.py
"""
Feature engineering for a single hourly series (date, value).

Steps, in order:
  1) standardize value
  2) lag of value (lagN)
  3) centered rolling means of the lag (rollP), partial windows at the edges
  4) calendar signature of the timestamp (index_num standardized)
  5) fourier sin/cos pairs (sinP_Kk, cosP_Kk)
  6) drop warm-up rows where lag / rolling values are undefined
"""

import numpy as np
import pandas as pd
from pandas.api.indexers import BaseIndexer

from utils.constants import (
    DATE_COL, VALUE_COL, LAG_PERIOD, ROLLING_PERIODS, FOURIER_PERIODS, FOURIER_ORDER,
)
from utils.math_utils import standardize_vec
from utils.schema import lag_col, roll_col


class _CenteredWindow(BaseIndexer):
    """Window of `before` rows back and `after` rows ahead, clipped at both ends."""

    def get_window_bounds(self, num_values=0, min_periods=None, center=None, closed=None, step=None):
        idx = np.arange(num_values, dtype=np.int64)
        start = np.clip(idx - self.before, 0, num_values)
        end = np.clip(idx + self.after + 1, 0, num_values)
        return start, end


def _check_period(name: str, value) -> int:
    if isinstance(value, bool) or int(value) != value or int(value) < 1:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def _epoch_seconds(dates: pd.Series) -> np.ndarray:
    dates = pd.to_datetime(dates)
    return ((dates - pd.Timestamp("1970-01-01")) / pd.Timedelta(seconds=1)).to_numpy(dtype=float)


def centered_rolling_mean(s: pd.Series, period: int) -> pd.Series:
    """
    Centered mean over `period` rows: floor(period/2) before, the rest after.
    Edge windows are truncated; a missing value anywhere in the window gives NaN.
    """
    period = _check_period("period", period)
    before = period // 2
    window = _CenteredWindow(before=before, after=period - before - 1)

    s = pd.to_numeric(s, errors="coerce").astype(float)
    means = s.rolling(window, min_periods=1).mean()
    has_gap = s.isna().astype(float).rolling(window, min_periods=1).sum() > 0
    means[has_gap] = np.nan
    return means


def calendar_signature(dates: pd.Series) -> pd.DataFrame:
    """Calendar components of each timestamp (index_num left unscaled)."""
    dates = pd.to_datetime(pd.Series(dates)).reset_index(drop=True)

    # Sunday = 1 ... Saturday = 7
    wday = (dates.dt.dayofweek + 1) % 7 + 1
    mday = dates.dt.day
    first_of_month = dates - pd.to_timedelta(mday - 1, unit="D")
    wday_first = (first_of_month.dt.dayofweek + 1) % 7 + 1
    week = (dates.dt.dayofyear - 1) // 7 + 1

    signature = pd.DataFrame({
        "month": dates.dt.month,
        "day": mday,
        "hour": dates.dt.hour,
        "am_pm": np.where(dates.dt.hour < 12, 1, 2),
        "wday": wday,
        "mday": mday,
        "mweek": (mday + wday_first - 2) // 7 + 1,
        "week": week,
        "week2": week % 2,
        "week3": week % 3,
        "week4": week % 4,
        "mday7": (mday - 1) // 7 + 1,
    }).astype("int64")
    signature.insert(0, "index_num", _epoch_seconds(dates))
    return signature


def fourier_terms(dates: pd.Series, periods=FOURIER_PERIODS, order: int = FOURIER_ORDER) -> pd.DataFrame:
    """
    sin/cos terms with time measured in sampling steps (smallest gap between timestamps),
    so a period of 24 on hourly data is one day.
    """
    order = _check_period("fourier_order", order)
    t = _epoch_seconds(pd.Series(dates))
    gaps = np.diff(np.unique(t))
    if len(gaps) == 0:
        raise ValueError("Fourier terms need at least two distinct timestamps.")
    t = t / gaps.min()

    cols = {}
    for p in periods:
        p = _check_period("fourier period", p)
        for k in range(1, order + 1):
            cols[f"sin{p}_K{k}"] = np.sin(2 * np.pi * k * t / p)
            cols[f"cos{p}_K{k}"] = np.cos(2 * np.pi * k * t / p)
    return pd.DataFrame(cols)


def generate_feature(
    df: pd.DataFrame,
    lag_period: int = LAG_PERIOD,
    rolling_periods=ROLLING_PERIODS,
    fourier_periods=FOURIER_PERIODS,
    fourier_order: int = FOURIER_ORDER,
    drop_na: bool = True,
) -> pd.DataFrame:
    """
    Build the feature table from a single series.

    Expected columns: date (datetime-like, unique), value (numeric).
    Returns a new, date-sorted DataFrame: date, value (standardized), lag, rolling
    means, calendar signature and fourier terms. With drop_na=True the warm-up rows
    are removed and no missing value remains.
    """
    required_cols = {DATE_COL, VALUE_COL}
    missing = required_cols.difference(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    lag_period = _check_period("lag_period", lag_period)

    # Work on a copy to avoid mutating caller's DataFrame
    out = df[[DATE_COL, VALUE_COL]].copy()
    if not np.issubdtype(out[DATE_COL].dtype, np.datetime64):
        try:
            out[DATE_COL] = pd.to_datetime(out[DATE_COL], errors="raise")
        except Exception as e:
            raise ValueError(f"Column '{DATE_COL}' must be datetime. Failed to convert.") from e
    out = out.sort_values(DATE_COL).reset_index(drop=True)

    if out[DATE_COL].duplicated().any():
        raise ValueError("Timestamps must be unique per row.")
    if len(out) < 2:
        raise ValueError("Need at least two rows to build features.")

    # --- standardization ---
    out[VALUE_COL] = standardize_vec(pd.to_numeric(out[VALUE_COL], errors="coerce"))

    # --- lag & rolling ---
    lag = lag_col(lag_period)
    out[lag] = out[VALUE_COL].shift(lag_period)
    for p in rolling_periods:
        out[roll_col(_check_period("rolling period", p))] = centered_rolling_mean(out[lag], p)

    # --- calendar ---
    signature = calendar_signature(out[DATE_COL])
    signature["index_num"] = standardize_vec(signature["index_num"])

    # --- fourier ---
    fourier = fourier_terms(out[DATE_COL], fourier_periods, fourier_order)

    out = pd.concat([out, signature, fourier], axis=1)

    if drop_na:
        out = out.dropna().reset_index(drop=True)
        if out.empty:
            raise ValueError(
                f"No rows left after dropping warm-up rows; series shorter than lag "
                f"{lag_period} plus rolling windows {list(rolling_periods)}."
            )
    return out
