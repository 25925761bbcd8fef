"""Top-level execution entry point with backend fallback.

`Dispatcher.execute` picks exactly one backend per call, in fixed priority:

1. native Octave, when `config.enable_native_runtime` is set,
2. the remote Docker runner, when `config.enable_docker_runtime` is set,
3. local simulation (sanitizer + pattern simulator) otherwise.

An exception escaping the native or remote backend is logged and the call
falls through to local simulation. A failure inside local simulation is
terminal. `execute` never raises: every path ends in an `ExecutionResult`
with `execution_time_ms` set.
"""

import logging
import time
from typing import Optional

from .remote import DockerOctaveBackend
from .results import ExecutionConfig, ExecutionResult
from .sanitizer import sanitize
from .simulator import PatternSimulator
from .subprocess_runner import NativeOctaveBackend

logger = logging.getLogger(__name__)


class Dispatcher:
    """Linear fallback chain over the execution backends.

    Backends are injectable so tests (and alternative deployments) can swap
    any of them; nothing is shared between calls except these stateless
    collaborators.
    """

    def __init__(
        self,
        native: Optional[NativeOctaveBackend] = None,
        docker: Optional[DockerOctaveBackend] = None,
        simulator: Optional[PatternSimulator] = None,
    ):
        self.native = native or NativeOctaveBackend()
        self.docker = docker or DockerOctaveBackend()
        self.simulator = simulator or PatternSimulator()

    def execute(self, code: str, config: Optional[ExecutionConfig] = None) -> ExecutionResult:
        config = config or ExecutionConfig()
        start = time.perf_counter()

        backend = None
        if config.enable_native_runtime:
            backend = self.native
        elif config.enable_docker_runtime:
            backend = self.docker

        if backend is not None:
            logger.info("Using %s Octave execution", backend.name)
            try:
                result = backend.execute(code, config)
                if not config.plot_output:
                    result.dataset = None
                result.execution_time_ms = (time.perf_counter() - start) * 1000
                return result
            except Exception as e:
                logger.warning(
                    "Error using %s Octave backend, falling back to simulation: %s",
                    backend.name,
                    e,
                    exc_info=True,
                )
        return self._simulate(code, config, start)

    def _simulate(self, code: str, config: ExecutionConfig, start: float) -> ExecutionResult:
        try:
            result = self.simulator.run(sanitize(code))
        except Exception as e:
            message = str(e) or "Unknown error"
            logger.error("Local simulation failed: %s", message)
            return ExecutionResult.failure(
                message,
                [f">> Error: {message}"],
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )
        if not config.plot_output:
            result.dataset = None
        result.execution_time_ms = (time.perf_counter() - start) * 1000
        return result


def execute(code: str, config: Optional[ExecutionConfig] = None) -> ExecutionResult:
    """Run `code` through a default `Dispatcher`.

    With no config the runtime switches are resolved from the environment
    (`ENABLE_OCTAVE_NATIVE`, `ENABLE_OCTAVE_DOCKER`).
    """
    return Dispatcher().execute(code, config or ExecutionConfig.from_env())
