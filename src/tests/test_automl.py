# tests/test_automl.py
"""H2O interactions, exercised with stand-ins so no JVM is needed."""

import numpy as np
import pandas as pd
import pytest
from sklearn.base import is_regressor
from sklearn.utils.validation import check_is_fitted

import models.automl as automl
from models.automl import (
    H2ORegressor, h2o_cluster, fit_automl, to_h2o_frame, leaderboard, best_model, performance, load_model,
)


class _FakeCluster:
    def __init__(self):
        self.shutdown_calls = 0

    def shutdown(self, prompt=False):
        self.shutdown_calls += 1


class _FakeH2O:
    def __init__(self):
        self.cluster_obj = _FakeCluster()
        self.init_kwargs = None
        self.progress_off = False
        self.frames = []

    def init(self, **kwargs):
        self.init_kwargs = kwargs

    def no_progress(self):
        self.progress_off = True

    def cluster(self):
        return self.cluster_obj

    def H2OFrame(self, df):
        frame = _FakeFrame(df)
        self.frames.append(frame)
        return frame


class _FakeColumn:
    def __init__(self, name):
        self.name = name
        self.factor = False

    def asfactor(self):
        col = _FakeColumn(self.name)
        col.factor = True
        return col


class _FakeFrame:
    def __init__(self, df):
        self.df = df
        self.cols = {c: _FakeColumn(c) for c in df.columns}

    def __getitem__(self, key):
        return self.cols[key]

    def __setitem__(self, key, value):
        self.cols[key] = value


@pytest.fixture
def fake_h2o(monkeypatch):
    fake = _FakeH2O()
    monkeypatch.setattr(automl, "h2o", fake)
    return fake


def test_cluster_started_and_shut_down(fake_h2o, monkeypatch):
    monkeypatch.delenv("JAVA_HOME", raising=False)
    with h2o_cluster(java_home="/opt/jdk", max_mem_size="2G") as cluster:
        assert cluster is fake_h2o.cluster_obj
        assert fake_h2o.init_kwargs == {"nthreads": -1, "max_mem_size": "2G"}
        assert fake_h2o.progress_off
    assert fake_h2o.cluster_obj.shutdown_calls == 1
    import os
    assert os.environ["JAVA_HOME"] == "/opt/jdk"


def test_cluster_shut_down_on_error(fake_h2o):
    with pytest.raises(RuntimeError):
        with h2o_cluster():
            raise RuntimeError("boom")
    assert fake_h2o.cluster_obj.shutdown_calls == 1


def test_to_h2o_frame_drops_date_and_factors(fake_h2o):
    df = pd.DataFrame({"date": pd.date_range("2020", periods=3, freq="h"),
                       "am_pm": [1, 1, 2], "hour": [0, 1, 13]})
    frame = to_h2o_frame(df)
    assert "date" not in frame.df.columns
    assert frame["am_pm"].factor
    assert not frame["hour"].factor


def test_fit_automl_forwards_budget(fake_h2o, monkeypatch):
    calls = {}

    class FakeAutoML:
        def __init__(self, **kwargs):
            calls["init"] = kwargs

        def train(self, x, y, training_frame):
            calls["train"] = (x, y, training_frame)

    monkeypatch.setattr(automl, "H2OAutoML", FakeAutoML)
    train = pd.DataFrame({"date": pd.date_range("2020", periods=4, freq="h"),
                          "value": [0.1, 0.2, 0.3, 0.4], "lag48": [1.0, 2.0, 3.0, 4.0],
                          "am_pm": [1, 1, 1, 1]})

    fit_automl(train, max_models=3, max_runtime_secs=None)
    assert calls["init"]["max_models"] == 3
    assert calls["init"]["max_runtime_secs"] == 120      # None keeps the default budget
    assert calls["init"]["nfolds"] == 5
    assert calls["init"]["sort_metric"] == "RMSE"
    assert calls["init"]["seed"] == 123
    x, y, frame = calls["train"]
    assert x == ["lag48", "am_pm"]
    assert y == "value"
    assert frame["am_pm"].factor


def test_fit_automl_requires_target():
    with pytest.raises(KeyError):
        fit_automl(pd.DataFrame({"a": [1.0]}))


def test_h2o_regressor_is_sklearn_regressor(monkeypatch):
    class FakePrediction:
        def __init__(self, n):
            self.n = n

        def as_data_frame(self):
            return pd.DataFrame({"predict": np.arange(self.n, dtype=float)})

    class FakeModel:
        def predict(self, frame):
            return FakePrediction(len(frame))

    monkeypatch.setattr(automl, "to_h2o_frame", lambda df, factor_cols=None: df)
    reg = H2ORegressor(FakeModel())
    assert is_regressor(reg)
    check_is_fitted(reg)

    out = reg.predict(pd.DataFrame({"a": [1.0, 2.0, 3.0]}))
    assert out.tolist() == [0.0, 1.0, 2.0]
    with pytest.raises(TypeError):
        reg.predict(np.ones((2, 1)))
    with pytest.raises(ValueError):
        H2ORegressor().predict(pd.DataFrame({"a": [1.0]}))


def test_fit_automl_accepts_verbosity(fake_h2o, monkeypatch):
    seen = {}

    class FakeAutoML:
        def __init__(self, **kwargs):
            seen.update(kwargs)

        def train(self, x, y, training_frame):
            pass

    monkeypatch.setattr(automl, "H2OAutoML", FakeAutoML)
    train = pd.DataFrame({"value": [0.1, 0.2], "lag48": [1.0, 2.0]})
    fit_automl(train, verbosity="info")
    assert seen["verbosity"] == "info"
    fit_automl(train)
    assert seen["verbosity"] is None


def test_leaderboard_and_leader():
    class FakeBoard:
        def as_data_frame(self):
            return pd.DataFrame({"model_id": ["StackedEnsemble_1", "GBM_2"], "rmse": [0.2, 0.3]})

    class FakeAml:
        leaderboard = FakeBoard()
        leader = "StackedEnsemble_1"

    board = leaderboard(FakeAml())
    assert board["model_id"].iloc[0] == "StackedEnsemble_1"
    assert best_model(FakeAml()) == "StackedEnsemble_1"


def test_performance_reads_h2o_metrics():
    class FakePerf:
        def rmse(self):
            return 0.5

        def mae(self):
            return 0.4

        def r2(self):
            return 0.75

    class FakeModel:
        def model_performance(self, test_data):
            assert test_data == "frame"
            return FakePerf()

    perf = performance(FakeModel(), "frame")
    assert perf == {"rmse": 0.5, "mae": 0.4, "r2": 0.75}


def test_load_model_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_model(str(tmp_path / "no_such_model"))
