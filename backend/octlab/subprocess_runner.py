"""Run programs in a locally installed GNU Octave (the production backend).

`run_octave_in_subprocess` writes the program to a temporary `.m` file,
appends a short epilogue that dumps the plot variables (`t`, `x`, `fs` and
`|X|`) to a JSON file, and launches `octave --no-gui --quiet <file>` as a
short-lived process. It enforces a wall-clock timeout and, on POSIX, light
OS-level limits (CPU seconds and address space) to reduce the blast radius of
runaway programs.

`NativeOctaveBackend` wraps that call and turns stdout, stderr and the parsed
variables into an `ExecutionResult`. It raises `BackendError` when Octave
cannot be launched or times out, which makes the dispatcher fall back to
local simulation.

Programs are passed through unsanitized: containment is this process
boundary's job. This is not a substitute for container/VM isolation.
"""

import json
import logging
import math
import os
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

from .results import Dataset, ExecutionConfig, ExecutionResult, PlotSeries

logger = logging.getLogger(__name__)

# Appended to every program; collects the variables the plot layer reads.
_EPILOGUE = """

octlab_result__ = struct();
if exist('t', 'var'), octlab_result__.t = t; end
if exist('x', 'var'), octlab_result__.x = x; end
if exist('fs', 'var'), octlab_result__.fs = fs; end
if exist('X', 'var'), octlab_result__.X_mag = abs(X); end
octlab_fid__ = fopen('{path}', 'w');
fputs(octlab_fid__, jsonencode(octlab_result__));
fclose(octlab_fid__);
"""


class BackendError(Exception):
    """A production or remote backend could not produce a result."""


class OctaveRun(NamedTuple):
    returncode: int
    stdout: str
    stderr: str
    variables: Optional[Dict[str, Any]]


def _make_posix_preexec(cpu_seconds: Optional[int], mem_limit_mb: Optional[int]):
    """Return a preexec_fn that applies resource limits on POSIX systems.

    If the `resource` module is unavailable the function is a no-op.
    """
    def preexec():
        try:
            import resource

            if cpu_seconds is not None:
                resource.setrlimit(resource.RLIMIT_CPU, (int(cpu_seconds), int(cpu_seconds)))

            if mem_limit_mb is not None:
                mem_bytes = int(mem_limit_mb) * 1024 * 1024
                resource.setrlimit(resource.RLIMIT_AS, (mem_bytes, mem_bytes))

            # new session so a timeout kill does not touch the parent's group
            try:
                os.setsid()
            except OSError:
                pass
        except (ImportError, ValueError, OSError):
            return

    return preexec


def run_octave_in_subprocess(
    code: str,
    timeout_s: float = 10.0,
    *,
    binary: str = "octave",
    cpu_seconds: Optional[int] = None,
    mem_limit_mb: Optional[int] = None,
) -> OctaveRun:
    """Run `code` with the Octave interpreter and return its outputs.

    On timeout the process is killed and `OctaveRun(-1, "", "TIMEOUT", None)`
    is returned. Raises OSError (FileNotFoundError) when the binary is
    missing. `variables` is None when the program never reached the epilogue.
    """
    # Keep the child's environment minimal to reduce accidental access to
    # host secrets.
    env = {"PATH": os.environ.get("PATH", ""), "HOME": tempfile.gettempdir()}

    with tempfile.TemporaryDirectory(prefix="octlab_") as workdir:
        script = Path(workdir) / "program.m"
        result_file = Path(workdir) / "result.json"
        script.write_text(code + _EPILOGUE.format(path=result_file.as_posix()), encoding="utf-8")

        popen_kwargs: Dict[str, Any] = dict(
            args=[binary, "--no-gui", "--quiet", "--no-window-system", str(script)],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
            cwd=workdir,
            close_fds=True,
        )
        if os.name != "nt":
            popen_kwargs["preexec_fn"] = _make_posix_preexec(cpu_seconds, mem_limit_mb)

        proc = subprocess.Popen(**popen_kwargs)
        try:
            out, err = proc.communicate(timeout=timeout_s)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            return OctaveRun(-1, "", "TIMEOUT", None)

        variables = None
        if result_file.exists():
            try:
                variables = json.loads(result_file.read_text(encoding="utf-8"))
            except ValueError:
                logger.warning("Octave result file is not valid JSON; ignoring it")

    return OctaveRun(proc.returncode, out or "", err or "", variables)


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        # jsonencode writes row vectors flat and column vectors as [[a], [b]]
        return [v[0] if isinstance(v, list) and v else v for v in value]
    if isinstance(value, (int, float)):
        return [value]
    return []


def dataset_from_variables(variables: Optional[Dict[str, Any]]) -> Optional[Dataset]:
    """Build `time`/`frequency` series from the variables Octave dumped."""
    if not variables:
        return None
    dataset: Dataset = {}
    t = _as_list(variables.get("t"))
    x = _as_list(variables.get("x"))
    if t and x:
        n = min(len(t), len(x))
        dataset["time"] = PlotSeries(x=t[:n], y=x[:n], kind="line", label="Signal")
        mags = _as_list(variables.get("X_mag"))
        if mags:
            fs = variables.get("fs")
            fs = float(fs) if isinstance(fs, (int, float)) else 1000.0
            half = math.ceil(len(mags) / 2)
            dataset["frequency"] = PlotSeries(
                x=[i * fs / len(mags) for i in range(half)],
                y=mags[:half],
                kind="line",
                label="Frequency Spectrum",
            )
    return dataset or None


class NativeOctaveBackend:
    """Production backend: a local Octave process per call."""

    name = "native"

    def __init__(self, binary: Optional[str] = None):
        self.binary = binary or os.environ.get("OCTAVE_BINARY", "octave")

    def execute(self, code: str, config: ExecutionConfig) -> ExecutionResult:
        timeout_s = config.effective_timeout_ms / 1000
        start = time.perf_counter()
        try:
            run = run_octave_in_subprocess(
                code,
                timeout_s,
                binary=self.binary,
                cpu_seconds=max(1, math.ceil(timeout_s)),
                mem_limit_mb=config.memory_limit_mb,
            )
        except OSError as e:
            raise BackendError(f"Cannot launch Octave: {e}") from e
        if run.returncode == -1 and run.stderr == "TIMEOUT":
            raise BackendError(f"Octave timed out after {timeout_s:g} s")

        elapsed = (time.perf_counter() - start) * 1000
        output = [line for line in run.stdout.splitlines() if line]
        # Octave prints warnings on stderr as well; only "error" is fatal
        if "error" in run.stderr.lower():
            return ExecutionResult.failure(run.stderr.strip(), output, execution_time_ms=elapsed)
        if run.returncode != 0:
            return ExecutionResult.failure(
                f"Octave exited with status {run.returncode}", output, execution_time_ms=elapsed
            )
        dataset = dataset_from_variables(run.variables) if config.plot_output else None
        logger.debug("native run finished lines=%d dataset=%s", len(output), sorted(dataset or {}))
        return ExecutionResult(success=True, transcript=output, dataset=dataset, execution_time_ms=elapsed)
