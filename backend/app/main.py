"""FastAPI application entrypoints for the Octave lab backend.

Handlers stay small: each request builds fresh executors (dispatcher,
interpreter or lab executor) so no state is shared between requests, and
client-supplied limits are clamped server-side before they reach a backend.
Every handler answers with the `ExecutionResult` JSON shape; only a missing or
empty program is rejected with status 400.
"""

import logging
import os
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..octlab.demos import LabExecutor
from ..octlab.dft import WINDOWS, compute_fft
from ..octlab.executor import Dispatcher
from ..octlab.interpreter import Interpreter
from ..octlab.results import DEFAULT_TIMEOUT_MS, ExecutionConfig, ExecutionResult

logger = logging.getLogger(__name__)

app = FastAPI(title="Octave Lab API", version="0.1")

# Server-side ceilings; clients may ask for less, never more.
MAX_TIMEOUT_MS = 30000
MAX_MEMORY_LIMIT_MB = 512
MAX_SIGNAL_LENGTH = 1024
MAX_PADDING = 2


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Clamp client-requested execution settings to server maxima.

    Accepts the camelCase `config` object of an `/execute` request and
    returns keyword arguments for `ExecutionConfig`.
    """
    safe = {
        "timeout_ms": DEFAULT_TIMEOUT_MS,
        "memory_limit_mb": MAX_MEMORY_LIMIT_MB,
        "plot_output": True,
    }
    if not settings:
        return safe
    caps = dict(safe)
    if settings.get("timeoutMs") is not None:
        caps["timeout_ms"] = max(1, min(int(settings["timeoutMs"]), MAX_TIMEOUT_MS))
    if settings.get("memoryLimitMb") is not None:
        caps["memory_limit_mb"] = max(1, min(int(settings["memoryLimitMb"]), MAX_MEMORY_LIMIT_MB))
    if settings.get("plotOutput") is not None:
        caps["plot_output"] = bool(settings["plotOutput"])
    return caps


def _missing_code() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ExecutionResult.failure("No code provided").to_dict(),
    )


@app.on_event("startup")
def startup():
    """Configure logging once from OCTLAB_LOG_LEVEL."""
    level = os.environ.get("OCTLAB_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO))


class ExecuteRequest(BaseModel):
    """Pydantic model for the `/execute` request body.

    Fields:
        code: program text.
        useOctave: run through the backend dispatcher (default) or, when
            false, directly through the statement interpreter. The
            interpreter evaluates the program for real; the pattern-matching
            simulation is only reached through the dispatcher.
        config: optional `{timeoutMs, memoryLimitMb, plotOutput}`; capped
            server-side.
    """
    code: Optional[str] = None
    useOctave: bool = True
    config: Optional[Dict[str, Any]] = None


@app.post("/execute")
def execute_code(req: ExecuteRequest):
    if not req.code or not req.code.strip():
        return _missing_code()
    start = time.perf_counter()
    try:
        capped = _cap_settings(req.config)
        if req.useOctave:
            result = Dispatcher().execute(req.code, ExecutionConfig.from_env(**capped))
        else:
            it = Interpreter()
            it.max_time_s = min(it.max_time_s, capped["timeout_ms"] / 1000)
            result = it.run(req.code)
            if not capped["plot_output"]:
                result.dataset = None
    except Exception as e:
        logger.exception("Unhandled error in /execute")
        result = ExecutionResult.failure(
            str(e) or type(e).__name__,
            execution_time_ms=(time.perf_counter() - start) * 1000,
        )
    return result.to_dict()


class LabRequest(BaseModel):
    code: Optional[str] = None


@app.post("/labs/hermitian/execute")
def execute_lab(req: LabRequest):
    if not req.code or not req.code.strip():
        return _missing_code()
    try:
        result = LabExecutor().execute(req.code)
    except Exception as e:
        logger.exception("Unhandled error in /labs/hermitian/execute")
        result = ExecutionResult.failure(str(e) or type(e).__name__)
    return result.to_dict()


class SignalRequest(BaseModel):
    signal: List[float]
    fs: float = 1000.0
    window: str = "rectangular"
    normalize: bool = True
    padding: int = 0


@app.post("/signal/fft")
def signal_fft(req: SignalRequest):
    """Single-sided spectrum of a posted real signal."""
    if not req.signal:
        return JSONResponse(status_code=400, content={"success": False, "errorMessage": "Empty signal"})
    if len(req.signal) > MAX_SIGNAL_LENGTH:
        return JSONResponse(
            status_code=400,
            content={"success": False, "errorMessage": f"Signal longer than {MAX_SIGNAL_LENGTH} samples"},
        )
    if req.window not in WINDOWS:
        return JSONResponse(
            status_code=400,
            content={"success": False, "errorMessage": f"Unknown window '{req.window}'"},
        )
    if req.fs <= 0:
        return JSONResponse(status_code=400, content={"success": False, "errorMessage": "fs must be positive"})
    spectrum = compute_fft(
        req.signal,
        req.fs,
        normalize=req.normalize,
        padding=max(0, min(req.padding, MAX_PADDING)),
        window=req.window,
    )
    return {"success": True, **spectrum}


@app.get("/health")
def health():
    config = ExecutionConfig.from_env()
    return {
        "status": "ok",
        "runtimes": {
            "native": config.enable_native_runtime,
            "docker": config.enable_docker_runtime,
            "simulation": True,
        },
    }
