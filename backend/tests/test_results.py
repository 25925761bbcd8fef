"""Tests for result/config shapes and the variable store."""

import pytest

from backend.octlab.results import ExecutionConfig, ExecutionResult, PlotSeries
from backend.octlab.values import ZERO, ComplexVector, RealVector, Scalar, VariableStore, is_vector


def test_success_cannot_carry_error():
    with pytest.raises(ValueError):
        ExecutionResult(success=True, error_message="nope")


def test_failure_always_has_message():
    assert ExecutionResult(success=False).error_message == "Unknown error"
    res = ExecutionResult.failure("boom", ["line"])
    assert res.transcript == ["line"]
    assert res.error_message == "boom"


def test_to_dict_shape():
    res = ExecutionResult(
        success=True,
        transcript=["a"],
        dataset={"time": PlotSeries(x=[0, 1], y=[2, 3], label="Signal")},
        execution_time_ms=1.5,
    )
    assert res.to_dict() == {
        "success": True,
        "output": ["a"],
        "data": {"time": {"x": [0, 1], "y": [2, 3], "kind": "line", "label": "Signal"}},
        "executionTimeMs": 1.5,
    }


def test_from_dict_marker_series():
    res = ExecutionResult.from_dict(
        {"success": True, "output": [], "data": {"frequency": {"x": [1], "y": [2], "mode": "markers"}}}
    )
    assert res.dataset["frequency"].kind == "marker"
    assert res.execution_time_ms is None


def test_series_kind_is_validated():
    with pytest.raises(ValueError):
        PlotSeries(x=[], y=[], kind="pie")


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("ENABLE_OCTAVE_NATIVE", "TRUE")
    monkeypatch.setenv("ENABLE_OCTAVE_DOCKER", "1")
    monkeypatch.delenv("OCTAVE_API_KEY", raising=False)
    config = ExecutionConfig.from_env(timeout_ms=500, enable_native_runtime=None)
    assert config.enable_native_runtime is True
    assert config.enable_docker_runtime is False
    assert config.api_key is None
    assert config.effective_timeout_ms == 500
    assert ExecutionConfig().effective_timeout_ms == 10000


def test_store_last_write_wins_and_typed_access():
    store = VariableStore()
    store.set("x", Scalar(1.0))
    store.set("x", RealVector((1.0, 2.0)))
    assert store.scalar("x") is None
    assert store.real_vector("x") == RealVector((1.0, 2.0))
    store.set("X", ComplexVector((1j,)))
    assert store.complex_vector("X") is not None
    assert store.scalars() == {}
    assert is_vector(store.get("X"))
    assert not is_vector(ZERO)
    assert sorted(store) == ["X", "x"]
    store.delete("x")
    assert "x" not in store
    store.clear()
    assert len(store) == 0
