"""Remote (containerized) Octave runner client.

Serverless deployments cannot spawn processes, so programs are POSTed to a
separate service that runs Octave in a container. The service answers with
an `ExecutionResult`-shaped JSON body.

Transport and HTTP failures are reported as a failing result from this
backend instead of an exception: the remote runner is the last real backend
in the chain. Only a missing endpoint configuration raises `BackendError`.
"""

import logging
import os
import time
from typing import Optional

import requests

from .results import ExecutionConfig, ExecutionResult
from .subprocess_runner import BackendError

logger = logging.getLogger(__name__)


class DockerOctaveBackend:
    """Client for the remote Octave-in-Docker service."""

    name = "docker"

    def __init__(self, url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.url = url or os.environ.get("OCTAVE_API_URL")
        self.session = session or requests.Session()

    def execute(self, code: str, config: ExecutionConfig) -> ExecutionResult:
        if not self.url:
            raise BackendError("OCTAVE_API_URL is not configured")
        timeout_ms = config.effective_timeout_ms
        headers = {"Content-Type": "application/json"}
        api_key = config.api_key or os.environ.get("OCTAVE_API_KEY")
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        start = time.perf_counter()
        try:
            resp = self.session.post(
                self.url,
                json={"code": code, "timeout": timeout_ms},
                headers=headers,
                # leave the service time to report its own timeout
                timeout=timeout_ms / 1000 + 5.0,
            )
            resp.raise_for_status()
            result = ExecutionResult.from_dict(resp.json())
        except (requests.RequestException, ValueError) as e:
            message = str(e) or type(e).__name__
            logger.error("Remote Octave execution failed: %s", message)
            return ExecutionResult.failure(
                message,
                [">> Error executing Octave via Docker", f">> {message}"],
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )
        if result.execution_time_ms is None:
            result.execution_time_ms = (time.perf_counter() - start) * 1000
        return result
