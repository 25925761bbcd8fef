"""Value model and per-run variable store for the interpreter.

A value is exactly one of `Scalar`, `RealVector` or `ComplexVector`. The
store is a plain mapping from identifier to value; the interpreter creates a
new one for every run, so nothing leaks between runs.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple, Union


@dataclass(frozen=True)
class Scalar:
    value: float

    kind = "scalar"


@dataclass(frozen=True)
class RealVector:
    values: Tuple[float, ...]

    kind = "real_vector"

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class ComplexVector:
    values: Tuple[complex, ...]

    kind = "complex_vector"

    def __len__(self) -> int:
        return len(self.values)


Value = Union[Scalar, RealVector, ComplexVector]

ZERO = Scalar(0.0)


def is_vector(value: Optional[Value]) -> bool:
    return isinstance(value, (RealVector, ComplexVector))


@dataclass
class VariableStore:
    """Identifier -> Value mapping. Last write wins."""

    _vars: Dict[str, Value] = field(default_factory=dict)

    def set(self, name: str, value: Value) -> None:
        self._vars[name] = value

    def get(self, name: str) -> Optional[Value]:
        return self._vars.get(name)

    def scalar(self, name: str) -> Optional[float]:
        v = self._vars.get(name)
        return v.value if isinstance(v, Scalar) else None

    def real_vector(self, name: str) -> Optional[RealVector]:
        v = self._vars.get(name)
        return v if isinstance(v, RealVector) else None

    def complex_vector(self, name: str) -> Optional[ComplexVector]:
        v = self._vars.get(name)
        return v if isinstance(v, ComplexVector) else None

    def scalars(self) -> Dict[str, float]:
        """Snapshot of every bound scalar, used by the arithmetic evaluator."""
        return {k: v.value for k, v in self._vars.items() if isinstance(v, Scalar)}

    def delete(self, name: str) -> None:
        self._vars.pop(name, None)

    def clear(self) -> None:
        self._vars.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._vars

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)
