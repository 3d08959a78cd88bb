# utils/io_utils.py
import copy
import os

import pandas as pd
import yaml

from utils.constants import DEFAULT_CONFIG

# src/ and the repository root above it
SRC_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PROJECT_ROOT = os.path.dirname(SRC_DIR)


def _deep_merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for key, val in (override or {}).items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], val)
        else:
            out[key] = val
    return out


def load_config(path: str = None) -> dict:
    """
    Load the run configuration (xai_ts.yaml) and fill gaps from DEFAULT_CONFIG.
    If no path provided, defaults to src/config/xai_ts.yaml.
    """
    if path is None:
        path = os.path.join(SRC_DIR, "config", "xai_ts.yaml")

    if not os.path.exists(path):
        raise FileNotFoundError(f"config file not found at: {path}")
    with open(path, "r", encoding="utf-8") as f:
        user_cfg = yaml.safe_load(f) or {}
    if not isinstance(user_cfg, dict):
        raise ValueError(f"Config root must be a mapping, got {type(user_cfg).__name__}")
    return _deep_merge(DEFAULT_CONFIG, user_cfg)


def resolve_path(ref: str, must_exist: bool = True) -> str:
    """Resolve a path as given, then relative to the project root."""
    if os.path.isabs(ref):
        if must_exist and not os.path.exists(ref):
            raise FileNotFoundError(f"File not found: {ref}")
        return ref
    for cand in (os.path.abspath(ref), os.path.join(PROJECT_ROOT, ref)):
        if os.path.exists(cand):
            return cand
    if must_exist:
        raise FileNotFoundError(f"File not found: {ref}")
    return os.path.join(PROJECT_ROOT, ref)


def ensure_dir(path: str) -> str:
    os.makedirs(path, exist_ok=True)
    return path


def save_table(df: pd.DataFrame, out_dir: str, name: str) -> str:
    path = os.path.join(ensure_dir(out_dir), f"{name}.csv")
    df.to_csv(path, index=False)
    return path
