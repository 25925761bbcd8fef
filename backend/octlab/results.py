"""Result and configuration shapes shared by every execution path.

`ExecutionResult` is what callers get back from the dispatcher, the
interpreter and the lab executors. `to_dict` produces the JSON shape served
over HTTP (camelCase keys, as the frontend reads them); `from_dict` accepts
the same shape back from the remote runner.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

SERIES_KINDS = ("line", "marker", "heatmap")

DEFAULT_TIMEOUT_MS = 10000


@dataclass
class PlotSeries:
    x: List[Union[float, str]]
    y: List[float]
    kind: str = "line"
    label: Optional[str] = None

    def __post_init__(self):
        if self.kind not in SERIES_KINDS:
            raise ValueError(f"Unknown series kind '{self.kind}'")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"x": list(self.x), "y": list(self.y), "kind": self.kind}
        if self.label is not None:
            out["label"] = self.label
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlotSeries":
        kind = data.get("kind")
        if kind is None:
            # plotly-style payloads carry type/mode instead of kind
            kind = "marker" if data.get("mode") == "markers" else "line"
            if data.get("type") == "heatmap":
                kind = "heatmap"
        return cls(
            x=list(data.get("x", [])),
            y=list(data.get("y", [])),
            kind=kind,
            label=data.get("label", data.get("name")),
        )


Dataset = Dict[str, PlotSeries]


@dataclass
class ExecutionResult:
    """Outcome of one execution call.

    `success=False` always carries an `error_message`; `success=True` never
    does. The constructor enforces both.
    """

    success: bool
    transcript: List[str] = field(default_factory=list)
    dataset: Optional[Dataset] = None
    error_message: Optional[str] = None
    execution_time_ms: Optional[float] = None

    def __post_init__(self):
        if self.success and self.error_message is not None:
            raise ValueError("successful result cannot carry an error message")
        if not self.success and not self.error_message:
            self.error_message = "Unknown error"

    @classmethod
    def failure(cls, message: str, transcript: Optional[Sequence[str]] = None, **kwargs) -> "ExecutionResult":
        return cls(success=False, transcript=list(transcript or []), error_message=message, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "output": list(self.transcript)}
        if self.dataset:
            out["data"] = {name: s.to_dict() for name, s in self.dataset.items()}
        if self.error_message is not None:
            out["errorMessage"] = self.error_message
        if self.execution_time_ms is not None:
            out["executionTimeMs"] = self.execution_time_ms
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionResult":
        success = bool(data.get("success"))
        raw = data.get("data") or {}
        dataset = {name: PlotSeries.from_dict(s) for name, s in raw.items() if s}
        elapsed = data.get("executionTimeMs", data.get("executionTime"))
        return cls(
            success=success,
            transcript=list(data.get("output", [])),
            dataset=dataset or None,
            error_message=None if success else (data.get("errorMessage") or data.get("error") or "Remote execution failed"),
            execution_time_ms=float(elapsed) if elapsed is not None else None,
        )


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() == "true"


@dataclass(frozen=True)
class ExecutionConfig:
    """Per-call execution options.

    Runtime switches default to off, which means local simulation only.
    `timeout_ms=None` lets the backend use `DEFAULT_TIMEOUT_MS`.
    """

    timeout_ms: Optional[int] = None
    memory_limit_mb: Optional[int] = None
    plot_output: bool = True
    enable_native_runtime: bool = False
    enable_docker_runtime: bool = False
    api_key: Optional[str] = None

    @property
    def effective_timeout_ms(self) -> int:
        return self.timeout_ms if self.timeout_ms is not None else DEFAULT_TIMEOUT_MS

    @classmethod
    def from_env(cls, **overrides) -> "ExecutionConfig":
        """Resolve runtime switches from the hosting environment.

        Read on every call; explicit keyword overrides win over the
        environment.
        """
        values: Dict[str, Any] = {
            "enable_native_runtime": _env_flag("ENABLE_OCTAVE_NATIVE"),
            "enable_docker_runtime": _env_flag("ENABLE_OCTAVE_DOCKER"),
            "api_key": os.environ.get("OCTAVE_API_KEY") or None,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
