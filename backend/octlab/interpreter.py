"""Statement-level interpreter for the Octave-like lab subset.

The interpreter walks a program one statement at a time, in source order,
with no jumps. Each statement is classified on its own:

- assignment `name = expr`, evaluated by the first matching sub-evaluator
  (range, trigonometric, fft, random, numeric literal, arithmetic),
- `fprintf(...)`, which appends formatted text to the transcript,
- any statement mentioning `plot`, which turns `t`, `x`, `X` and `fs` into
  plot series,
- `clear` / `clc` / `close`,
- anything else, which is echoed verbatim.

Evaluation failures inside a sub-evaluator are recovered as `0` (see
`FallbackPolicy`); anything else that goes wrong aborts the run and is
reported as a failing `ExecutionResult` that keeps the transcript produced so
far. A fresh `VariableStore` is created for every run.
"""

import math
import random
import re
import time
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .dft import dft
from .expressions import EvalError, FallbackPolicy, eval_scalar, evaluate
from .results import Dataset, ExecutionResult, PlotSeries
from .values import ZERO, ComplexVector, RealVector, Scalar, Value, VariableStore

DEFAULT_FREQUENCY_HZ = 50.0
DEFAULT_SAMPLE_RATE_HZ = 1000.0

_ASSIGNMENT = re.compile(r"^([A-Za-z_]\w*)\s*=(?!=)\s*(.*)$")
_TRIG_CALL = re.compile(r"\b(sin|cos)\s*\(")
_SIN_CALL = re.compile(r"\bsin\s*\(")
_FFT_CALL = re.compile(r"\bfft\s*\(")
_FFT_ARG = re.compile(r"\bfft\s*\(\s*([A-Za-z_]\w*)\s*\)")
_RANDOM_CALL = re.compile(r"\b(?:randn|rand)\s*\(((?:[^()]|\([^()]*\))*)\)")
_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_FPRINTF = re.compile(r"^fprintf\b")
_FPRINTF_CALL = re.compile(r"^fprintf\s*\((.*)\)$", re.DOTALL)
_LENGTH_OF = re.compile(r"^(?:length|numel|size)\s*\(\s*([A-Za-z_]\w*)\s*\)$")
_ELEMENT_OF = re.compile(r"^([A-Za-z_]\w*)\s*\(\s*(.+?)\s*\)$")
_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", "r": "", "a": ""}


class InterpreterState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class InterpreterError(Exception):
    """Fatal error that aborts a run.

    `code` is a short machine-readable tag (STEP_LIMIT, TIMEOUT, OUTPUT_LIMIT,
    VECTOR_LIMIT, RUNTIME_ERROR); `line` is the 1-based source line.
    """

    def __init__(self, code: str, message: str, *, line: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.line = line

    def __str__(self) -> str:
        msg = super().__str__()
        if self.line is not None:
            return f"Line {self.line}: {msg}"
        return msg


def split_statements(line: str) -> List[str]:
    """Split a source line into statements.

    Drops a trailing `%` comment and splits on top-level `;`. Quotes are
    tracked so `%` and `;` inside string literals survive; a `'` directly
    after an identifier, closing bracket or another quote is a transpose,
    not a string opener.
    """
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    quote: Optional[str] = None
    i = 0
    while i < len(line):
        ch = line[i]
        if quote:
            buf.append(ch)
            if ch == quote:
                if i + 1 < len(line) and line[i + 1] == quote:
                    buf.append(line[i + 1])
                    i += 2
                    continue
                quote = None
            i += 1
            continue
        if ch in "'\"":
            prev = buf[-1] if buf else ""
            if ch == "'" and (prev.isalnum() or prev in "_)]}.'"):
                buf.append(ch)
            else:
                quote = ch
                buf.append(ch)
            i += 1
            continue
        if ch == "%":
            break
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
        elif ch == ";" and depth == 0:
            parts.append("".join(buf))
            buf = []
            i += 1
            continue
        buf.append(ch)
        i += 1
    parts.append("".join(buf))
    return [p.strip() for p in parts if p.strip()]


def _split_top_level(text: str, sep: str) -> List[str]:
    """Split on `sep` outside brackets and quotes."""
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    quote: Optional[str] = None
    for ch in text:
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in "'\"":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf))
    return parts


def _string_literal(text: str) -> Optional[Tuple[str, str]]:
    """Parse a leading quoted literal; return (value, remainder) or None."""
    text = text.lstrip()
    if not text or text[0] not in "'\"":
        return None
    quote = text[0]
    out: List[str] = []
    i = 1
    while i < len(text):
        ch = text[i]
        if ch == quote:
            if i + 1 < len(text) and text[i + 1] == quote:
                out.append(quote)
                i += 2
                continue
            return "".join(out), text[i + 1:]
        out.append(ch)
        i += 1
    return None


def _unescape(fmt: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(0)), fmt)


class Interpreter:
    """Run Octave-like lab programs against a fresh variable store.

    Tunable attributes (defaults are set in __init__):
    - max_steps, max_time_s, max_output_chars, max_vector_length: safety caps;
      exceeding any of them aborts the run
    - fallback: what sub-evaluators do when they cannot compute a value
    - default_frequency: `f` used by sin/cos when the program never binds it
    - default_sample_rate: `fs` used for the frequency axis when unbound
    """

    def __init__(self, *, fallback: FallbackPolicy = FallbackPolicy.ZERO, seed: Optional[int] = None):
        # Safety limits enforced per-run
        self.max_steps = 100000
        self.max_time_s = 10.0
        self.max_output_chars = 100000
        self.max_vector_length = 1_000_000
        self.fallback = fallback
        self.default_frequency = DEFAULT_FREQUENCY_HZ
        self.default_sample_rate = DEFAULT_SAMPLE_RATE_HZ
        self.rng = random.Random(seed)
        self.state = InterpreterState.IDLE

    # --- Entry point ------------------------------------------------------
    def run(self, code: str) -> ExecutionResult:
        """Execute `code` and return its result. Never raises."""
        start = time.perf_counter()
        transcript: List[str] = []
        dataset: Dataset = {}
        store = VariableStore()
        self.state = InterpreterState.RUNNING
        try:
            self._execute(code or "", store, transcript, dataset, start)
        except Exception as e:
            self.state = InterpreterState.FAILED
            message = str(e) or type(e).__name__
            transcript.append(f">> Error: {message}")
            return ExecutionResult.failure(
                message,
                transcript,
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )
        self.state = InterpreterState.DONE
        return ExecutionResult(
            success=True,
            transcript=transcript,
            dataset=dataset or None,
            execution_time_ms=(time.perf_counter() - start) * 1000,
        )

    def _execute(self, code: str, store: VariableStore, transcript: List[str], dataset: Dataset, start: float) -> None:
        steps = 0
        for lineno, raw in enumerate(code.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("%"):
                continue
            for stmt in split_statements(line):
                if time.perf_counter() - start > self.max_time_s:
                    raise InterpreterError("TIMEOUT", "Time limit exceeded", line=lineno)
                steps += 1
                if steps > self.max_steps:
                    raise InterpreterError("STEP_LIMIT", "Step limit exceeded", line=lineno)
                try:
                    self._dispatch(stmt, store, transcript, dataset)
                except InterpreterError as e:
                    if e.line is None:
                        e.line = lineno
                    raise

    def _dispatch(self, stmt: str, store: VariableStore, transcript: List[str], dataset: Dataset) -> None:
        m = _ASSIGNMENT.match(stmt)
        if m:
            name, expr = m.group(1), m.group(2).strip()
            store.set(name, self.evaluate_expression(expr, store))
            return
        if _FPRINTF.match(stmt):
            text = self._format_print(stmt, store)
            if text is not None:
                for out in text:
                    self._emit(transcript, out)
            return
        if "plot" in stmt:
            self._plot(store, dataset)
            return
        token = stmt.split(None, 1)[0]
        if token in ("clear", "clc", "close", "clearvars"):
            self._cleanup(stmt, store, transcript)
            return
        self._emit(transcript, stmt)

    def _emit(self, transcript: List[str], text: str) -> None:
        if sum(len(x) for x in transcript) + len(text) > self.max_output_chars:
            raise InterpreterError("OUTPUT_LIMIT", "Output length limit reached")
        transcript.append(text)

    # --- Assignment sub-evaluators -----------------------------------------
    def evaluate_expression(self, expr: str, store: VariableStore) -> Value:
        """Evaluate the right-hand side of an assignment.

        Sub-evaluators are tried by syntactic shape, first match wins:
        range, sin/cos, fft, rand/randn, numeric literal, arithmetic.
        """
        range_parts = self._range_parts(expr)
        if range_parts is not None:
            return self._eval_range(range_parts, store)
        if _TRIG_CALL.search(expr):
            return self._eval_trig(expr, store)
        if _FFT_CALL.search(expr):
            return self._eval_fft(expr, store)
        if _RANDOM_CALL.search(expr):
            return self._eval_random(expr, store)
        if _NUMBER.fullmatch(expr):
            return Scalar(float(expr))
        return Scalar(evaluate(expr, store.scalars(), self.fallback))

    def _unresolved(self, message: str) -> Value:
        if self.fallback is FallbackPolicy.RAISE:
            raise EvalError(message)
        return ZERO

    @staticmethod
    def _range_parts(expr: str) -> Optional[List[str]]:
        body = expr.strip()
        if body.startswith("[") and body.endswith("]"):
            body = body[1:-1]
        if ":" not in body:
            return None
        parts = _split_top_level(body, ":")
        if len(parts) not in (2, 3) or any(not p.strip() for p in parts):
            return None
        return [p.strip() for p in parts]

    def _eval_range(self, parts: Sequence[str], store: VariableStore) -> RealVector:
        env = store.scalars()
        if len(parts) == 3:
            start, step, end = (evaluate(p, env, self.fallback) for p in parts)
        else:
            start, end = (evaluate(p, env, self.fallback) for p in parts)
            step = 1.0
        values: List[float] = []
        if step > 0:
            # repeated addition, not start + i*step: boundary inclusion follows
            # the accumulated float error
            current = start
            while current <= end:
                if len(values) >= self.max_vector_length:
                    raise InterpreterError("VECTOR_LIMIT", f"Range exceeds {self.max_vector_length} elements")
                values.append(current)
                current += step
        return RealVector(tuple(values))

    def _eval_trig(self, expr: str, store: VariableStore) -> Value:
        # only `t` and `f` are consulted, whatever the argument text says
        t = store.real_vector("t")
        if t is None:
            return self._unresolved("sin/cos needs a time vector 't'")
        f = store.scalar("f")
        if f is None:
            f = self.default_frequency
        fn = math.sin if _SIN_CALL.search(expr) else math.cos
        return RealVector(tuple(fn(2 * math.pi * f * ti) for ti in t.values))

    def _eval_fft(self, expr: str, store: VariableStore) -> Value:
        m = _FFT_ARG.search(expr)
        if not m:
            return self._unresolved("fft expects a single variable argument")
        signal = store.real_vector(m.group(1))
        if signal is None:
            return self._unresolved(f"'{m.group(1)}' is not a real vector")
        return ComplexVector(tuple(dft(signal.values)))

    def _eval_random(self, expr: str, store: VariableStore) -> Value:
        m = _RANDOM_CALL.search(expr)
        args = [a.strip() for a in _split_top_level(m.group(1), ",") if a.strip()] if m else []
        size = 1
        for arg in args:
            # any negative dimension empties the vector
            size *= max(0, self._size_argument(arg, store))
        if size > self.max_vector_length:
            raise InterpreterError("VECTOR_LIMIT", f"Random vector exceeds {self.max_vector_length} elements")
        # uniform on [-1, 1) for rand and randn alike
        return RealVector(tuple(self.rng.random() * 2 - 1 for _ in range(size)))

    def _size_argument(self, arg: str, store: VariableStore) -> int:
        m = _LENGTH_OF.match(arg)
        if m:
            v = store.get(m.group(1))
            if isinstance(v, (RealVector, ComplexVector)):
                return len(v)
            return 1 if v is not None else 0
        value = evaluate(arg, store.scalars(), self.fallback)
        if not math.isfinite(value):
            return 0
        return int(value)

    # --- fprintf -----------------------------------------------------------
    def _format_print(self, stmt: str, store: VariableStore) -> Optional[List[str]]:
        """Render an fprintf statement, or None when it is malformed."""
        m = _FPRINTF_CALL.match(stmt)
        if not m:
            return None
        parsed = _string_literal(m.group(1))
        if parsed is None:
            return None
        fmt, rest = parsed
        rest = rest.strip()
        if rest and not rest.startswith(","):
            return None
        arg_texts = [a.strip() for a in _split_top_level(rest[1:], ",")] if rest else []
        try:
            args = tuple(self._print_argument(a, store) for a in arg_texts)
            text = _unescape(fmt) % args if args else _unescape(fmt).replace("%%", "%")
        except (EvalError, TypeError, ValueError, IndexError, OverflowError):
            return None
        if text.endswith("\n"):
            text = text[:-1]
        return text.split("\n")

    def _print_argument(self, arg: str, store: VariableStore):
        literal = _string_literal(arg)
        if literal is not None and not literal[1].strip():
            return literal[0]
        m = _LENGTH_OF.match(arg)
        if m and m.group(0).startswith(("length", "numel")):
            v = store.get(m.group(1))
            if isinstance(v, (RealVector, ComplexVector)):
                return len(v)
            if v is not None:
                return 1
            raise EvalError(f"Undefined variable '{m.group(1)}'")
        m = _ELEMENT_OF.match(arg)
        if m and isinstance(store.get(m.group(1)), (RealVector, ComplexVector)):
            vec = store.get(m.group(1))
            idx_text = m.group(2)
            if idx_text == "end":
                index = len(vec)
            else:
                index = int(eval_scalar(idx_text.replace("end", str(len(vec))), store.scalars()))
            if not 1 <= index <= len(vec):
                raise EvalError("Index out of bounds")
            element = vec.values[index - 1]
            if isinstance(element, complex):
                raise EvalError("Cannot print a complex element")
            return _printable(element)
        if isinstance(store.get(arg), (RealVector, ComplexVector)):
            raise EvalError(f"'{arg}' is a vector")
        return _printable(eval_scalar(arg, store.scalars()))

    # --- plot / cleanup ----------------------------------------------------
    def _plot(self, store: VariableStore, dataset: Dataset) -> None:
        t = store.real_vector("t")
        x = store.real_vector("x")
        if t is None or x is None:
            return
        n = min(len(t), len(x))
        dataset["time"] = PlotSeries(x=list(t.values[:n]), y=list(x.values[:n]), kind="line", label="Signal")
        spectrum = store.complex_vector("X")
        if spectrum is None or not len(spectrum):
            return
        fs = store.scalar("fs")
        if fs is None:
            fs = self.default_sample_rate
        size = len(spectrum)
        half = math.ceil(size / 2)
        dataset["frequency"] = PlotSeries(
            x=[i * fs / size for i in range(half)],
            y=[abs(spectrum.values[i]) for i in range(half)],
            kind="line",
            label="Frequency Spectrum",
        )

    def _cleanup(self, stmt: str, store: VariableStore, transcript: List[str]) -> None:
        words = stmt.replace(",", " ").split()
        command, names = words[0], words[1:]
        if command in ("clear", "clearvars"):
            if not names or "all" in names or "-all" in names:
                store.clear()
            else:
                for name in names:
                    store.delete(name)
        elif command == "clc":
            self._emit(transcript, "Console cleared")
        # close: nothing to do without figures


def _printable(value: float):
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def run_program(code: str, **kwargs) -> ExecutionResult:
    """Convenience wrapper: run `code` on a fresh Interpreter."""
    return Interpreter(**kwargs).run(code)
