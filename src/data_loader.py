"""
data_loader.py
Simple CSV loader with schema checks for M4-style series files.
- Ensures required columns exist (from utils.constants).
- Enforces dtypes:
    * date -> datetime64
    * id, type, period -> string
    * value -> float64 (non-null)
- Drops invalid rows; raises DataLoaderError with a concise summary if any were dropped.
- select_series() narrows the table to one frequency / id and returns date, value.
"""

import os
import pandas as pd

from utils.constants import (
    DATE_COL, ID_COL, TYPE_COL, PERIOD_COL, VALUE_COL, REQUIRED_COLUMNS,
)
from utils.io_utils import PROJECT_ROOT


class DataLoaderError(Exception):
    """Raised when rows are dropped due to validation errors."""


def _default_dataset_path() -> str:
    # adjust if your CSV sits elsewhere
    return os.path.join(PROJECT_ROOT, "data", "m4.csv")


def _ensure_required_columns(df: pd.DataFrame) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"Missing required columns: {missing}")


def load_data(path: str | None = None) -> pd.DataFrame:
    """
    Read CSV and return a validated, cleaned DataFrame.
    If any rows are removed during validation, raises DataLoaderError (after constructing the cleaned df).
    """
    if path is None:
        path = _default_dataset_path()

    df = pd.read_csv(
        path,
        dtype="string",
        keep_default_na=True,
        na_values=["", "NA", "N/A", "na", "n/a", "NULL", "null", "-", "--"],
    )

    _ensure_required_columns(df)
    original_len = len(df)

    # ---------- Coercions & validation ----------
    df[DATE_COL] = pd.to_datetime(df[DATE_COL], errors="coerce")
    invalid_mask = df[DATE_COL].isna()

    for c in [ID_COL, TYPE_COL, PERIOD_COL]:
        df[c] = df[c].astype("string").str.strip()
    invalid_mask |= df[ID_COL].isna() | df[PERIOD_COL].isna()

    df[VALUE_COL] = pd.to_numeric(df[VALUE_COL], errors="coerce")
    invalid_mask |= df[VALUE_COL].isna()

    bad_rows = df[invalid_mask].copy()
    if invalid_mask.any():
        df = df[~invalid_mask].copy()

    df[VALUE_COL] = df[VALUE_COL].astype("float64")

    df = df.drop_duplicates(ignore_index=True)

    # ---------- Raise if anything was dropped ----------
    dropped = original_len - len(df)
    if dropped > 0:
        example_idx = list(bad_rows.index[:5])
        raise DataLoaderError(
            f"Validation failed for {dropped} row(s). "
            f"Dropped rows indices (first 5): {example_idx}. "
            f"Returned DataFrame contains {len(df)} valid row(s)."
        )

    return df


def list_series(df: pd.DataFrame, frequency: str) -> list:
    """Series ids available at a given frequency label."""
    ids = df.loc[df[PERIOD_COL] == frequency, ID_COL].dropna().unique()
    return sorted(str(i) for i in ids)


def select_series(df: pd.DataFrame, frequency: str, series_id: str) -> pd.DataFrame:
    """
    Keep one series (period == frequency and id == series_id).
    Returns a date-sorted DataFrame with date and value only.
    """
    _ensure_required_columns(df)
    mask = (df[PERIOD_COL] == frequency) & (df[ID_COL] == series_id)
    out = df.loc[mask, [DATE_COL, VALUE_COL]].sort_values(DATE_COL).reset_index(drop=True)
    if out.empty:
        available = list_series(df, frequency)[:10]
        raise ValueError(
            f"No rows for frequency={frequency!r}, id={series_id!r}. "
            f"Available ids (first 10): {available}"
        )
    dup = out[DATE_COL].duplicated()
    if dup.any():
        raise ValueError(
            f"Series {series_id!r} has {int(dup.sum())} duplicated timestamp(s), "
            f"first: {out.loc[dup, DATE_COL].iloc[0]}"
        )
    return out
