# schema.py
"""
Schema definition for the forecasting feature table and target.
Lag / rolling / fourier column names depend on the feature parameters,
so the feature list is built by feature_columns().
"""

from utils.constants import (
    LAG_PERIOD, ROLLING_PERIODS, FOURIER_PERIODS, FOURIER_ORDER,
)

TARGET_COL = "value"

CALENDAR_COLS = [
    "index_num", "month", "day", "hour", "am_pm", "wday", "mday",
    "mweek", "week", "week2", "week3", "week4", "mday7",
]

CATEGORICAL_COLS = ["am_pm"]


def lag_col(lag_period: int) -> str:
    return f"lag{lag_period}"


def roll_col(period: int) -> str:
    return f"roll{period}"


def fourier_cols(periods, order: int) -> list:
    cols = []
    for p in periods:
        for k in range(1, order + 1):
            cols += [f"sin{p}_K{k}", f"cos{p}_K{k}"]
    return cols


def feature_columns(
    lag_period: int = LAG_PERIOD,
    rolling_periods=ROLLING_PERIODS,
    fourier_periods=FOURIER_PERIODS,
    fourier_order: int = FOURIER_ORDER,
) -> list:
    """Ordered model inputs (everything but date and target)."""
    return (
        [lag_col(lag_period)]
        + [roll_col(p) for p in rolling_periods]
        + CALENDAR_COLS
        + fourier_cols(fourier_periods, fourier_order)
    )


FEATURE_COLS = feature_columns()
