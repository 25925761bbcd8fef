"""Tests for backend selection and fallback in the dispatcher."""

import pytest

from backend.octlab import executor as executor_module
from backend.octlab.executor import Dispatcher
from backend.octlab.results import ExecutionConfig, ExecutionResult, PlotSeries
from backend.octlab.sanitizer import sanitize
from backend.octlab.simulator import PatternSimulator
from backend.octlab.subprocess_runner import BackendError

PROGRAM = "fs = 1000;\nf1 = 50;\nx = sin(2*pi*f1*t) + noise;\nsystem('ls')\nX = fft(x);\nplot(t, x)"


class ExplodingBackend:
    def __init__(self, name, exc=None):
        self.name = name
        self.exc = exc or BackendError("octave not available")
        self.calls = 0

    def execute(self, code, config):
        self.calls += 1
        raise self.exc


class FixedBackend:
    def __init__(self, name, result):
        self.name = name
        self.result = result
        self.seen = []

    def execute(self, code, config):
        self.seen.append((code, config))
        return self.result


class BrokenSimulator:
    def run(self, code):
        raise RuntimeError("simulator exploded")


def test_native_failure_falls_back_to_simulation_only():
    native = ExplodingBackend("native")
    docker = ExplodingBackend("docker")
    dispatcher = Dispatcher(native=native, docker=docker, simulator=PatternSimulator(seed=11))
    config = ExecutionConfig(enable_native_runtime=True, enable_docker_runtime=True)

    result = dispatcher.execute(PROGRAM, config)
    alone = PatternSimulator(seed=11).run(sanitize(PROGRAM))

    assert native.calls == 1
    assert docker.calls == 0
    assert result.success == alone.success
    # the closing line carries the elapsed time
    assert result.transcript[:-1] == alone.transcript[:-1]
    assert result.dataset == alone.dataset
    assert result.error_message is None


def test_any_exception_from_backend_falls_back():
    native = ExplodingBackend("native", ValueError("bad output"))
    result = Dispatcher(native=native).execute("x = 1", ExecutionConfig(enable_native_runtime=True))
    assert result.success
    assert result.transcript[0].startswith(">> Executing code with Octave integration")


def test_docker_used_when_native_disabled():
    remote = ExecutionResult(success=True, transcript=["ans = 3"])
    docker = FixedBackend("docker", remote)
    native = ExplodingBackend("native")
    config = ExecutionConfig(enable_docker_runtime=True, api_key="k")
    result = Dispatcher(native=native, docker=docker).execute("1 + 2", config)
    assert result.transcript == ["ans = 3"]
    assert native.calls == 0
    # remote backends get the program as submitted
    assert docker.seen[0] == ("1 + 2", config)
    assert result.execution_time_ms is not None


def test_failing_result_from_backend_is_not_retried():
    failed = ExecutionResult.failure("Remote said no", [">> Error executing Octave via Docker"])
    docker = FixedBackend("docker", failed)
    result = Dispatcher(docker=docker).execute("x = 1", ExecutionConfig(enable_docker_runtime=True))
    assert not result.success
    assert result.error_message == "Remote said no"


def test_simulation_is_default_and_sanitizes():
    result = Dispatcher().execute("system('rm -rf /');\n!ls", ExecutionConfig())
    assert result.success
    assert ">> BLOCKED_system('rm -rf /');" in result.transcript
    assert ">> BLOCKED_SYSTEM_COMMAND" in result.transcript


def test_simulation_failure_is_terminal():
    result = Dispatcher(simulator=BrokenSimulator()).execute("x = 1", ExecutionConfig())
    assert not result.success
    assert result.error_message == "simulator exploded"
    assert result.transcript == [">> Error: simulator exploded"]
    assert result.execution_time_ms is not None


@pytest.mark.parametrize("flag", ["ENABLE_OCTAVE_NATIVE", "ENABLE_OCTAVE_DOCKER"])
def test_module_execute_reads_environment(monkeypatch, flag):
    seen = {}

    def fake_execute(self, code, config):
        seen["config"] = config
        return ExecutionResult(success=True)

    monkeypatch.delenv("ENABLE_OCTAVE_NATIVE", raising=False)
    monkeypatch.delenv("ENABLE_OCTAVE_DOCKER", raising=False)
    monkeypatch.setenv(flag, "true")
    monkeypatch.setattr(Dispatcher, "execute", fake_execute)
    executor_module.execute("x = 1")
    config = seen["config"]
    assert config.enable_native_runtime == (flag == "ENABLE_OCTAVE_NATIVE")
    assert config.enable_docker_runtime == (flag == "ENABLE_OCTAVE_DOCKER")


def test_zero_sample_rate_simulates_with_default():
    result = Dispatcher().execute("fs = 0\nplot(t,x)", ExecutionConfig())
    assert result.success
    assert result.dataset["time"].x[1] == pytest.approx(0.001)


def test_backend_dataset_dropped_without_plot_output():
    remote = ExecutionResult(
        success=True,
        transcript=["ans = 3"],
        dataset={"time": PlotSeries(x=[0.0, 1.0], y=[0.0, 1.0], label="Signal")},
    )
    docker = FixedBackend("docker", remote)
    config = ExecutionConfig(enable_docker_runtime=True, plot_output=False)
    result = Dispatcher(docker=docker).execute("plot(t, x)", config)
    assert result.success
    assert result.dataset is None
    assert result.transcript == ["ans = 3"]
