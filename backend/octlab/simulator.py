"""Pattern-based simulation of an Octave session.

This is the local backend used when no real Octave runtime is enabled. It
does not evaluate anything: the transcript echoes the program line by line,
and the dataset is synthesized from parameters picked out of the source with
regular expressions (sampling rate `fs = N`, tone frequencies `f1 = N`, ...).
Callers pass already-sanitized code.
"""

import math
import random
import re
import time
from typing import List, Optional

from .results import Dataset, ExecutionResult, PlotSeries

SAMPLE_COUNT = 1000
DEFAULT_SAMPLE_RATE = 1000
DEFAULT_FREQUENCIES = (50, 120)
NOISE_AMPLITUDE = 0.1

_FS = re.compile(r"fs\s*=\s*(\d+)")
_FREQ = re.compile(r"\bf\d*\s*=\s*(\d+)")
_PLOT_COMMANDS = ("plot", "stem", "mesh")


def detect_sample_rate(code: str, default: int = DEFAULT_SAMPLE_RATE) -> int:
    m = _FS.search(code)
    if not m or int(m.group(1)) <= 0:
        return default
    return int(m.group(1))


def detect_frequencies(code: str) -> List[int]:
    found = [int(v) for v in _FREQ.findall(code)]
    return found or list(DEFAULT_FREQUENCIES)


def _amplitude(i: int) -> float:
    return 1.0 if i == 0 else 0.5 / (i + 1)


class PatternSimulator:
    """Produce a plausible transcript and dataset without evaluating code.

    Attributes:
        latency_s: artificial delay emulating a real backend round trip
            (zero by default; it has no effect on the result)
        rng: random source for the optional noise component
    """

    def __init__(self, *, latency_s: float = 0.0, seed: Optional[int] = None):
        self.latency_s = latency_s
        self.rng = random.Random(seed)

    def run(self, code: str) -> ExecutionResult:
        start = time.perf_counter()
        output = [">> Executing code with Octave integration (simulated)..."]
        self.transcribe(code, output)
        if self.latency_s > 0:
            time.sleep(self.latency_s)
        dataset = self.synthesize(code)
        elapsed = (time.perf_counter() - start) * 1000
        output.append(f">> Code executed successfully in {elapsed:.2f} ms")
        return ExecutionResult(success=True, transcript=output, dataset=dataset, execution_time_ms=elapsed)

    @staticmethod
    def transcribe(code: str, output: List[str]) -> None:
        """Append one echoed line (plus any follow-up) per non-comment line."""
        for raw in code.split("\n"):
            line = raw.strip()
            if not line or line.startswith("%"):
                continue
            if "=" in line and "function" not in line:
                output.append(f">> {line}")
            elif any(cmd in line for cmd in _PLOT_COMMANDS):
                output.append(f">> {line}")
                output.append(">> Generating plot...")
            elif line.endswith(";"):
                output.append(f">> {line}")
            else:
                output.append(f">> {line}")
                output.append("ans = [Output would appear here in real Octave]")

    def synthesize(self, code: str) -> Dataset:
        """Build `time` (and, for fft programs, `frequency`) series."""
        fs = detect_sample_rate(code)
        freqs = detect_frequencies(code)
        t = [i / fs for i in range(SAMPLE_COUNT)]
        signal = [
            sum(_amplitude(i) * math.sin(2 * math.pi * f * ti) for i, f in enumerate(freqs))
            for ti in t
        ]
        if "noise" in code or "randn" in code:
            signal = [v + NOISE_AMPLITUDE * (self.rng.random() * 2 - 1) for v in signal]

        dataset: Dataset = {"time": PlotSeries(x=t, y=signal, kind="line", label="Signal")}
        if "fft(" in code:
            n = len(signal)
            bins = [i * (fs / n) for i in range(n // 2)]
            # Gaussian bump at each detected tone
            peaks = [
                sum(_amplitude(i) * math.exp(-10 * ((fb - f) / 5) ** 2) for i, f in enumerate(freqs))
                for fb in bins
            ]
            dataset["frequency"] = PlotSeries(x=bins, y=peaks, kind="line", label="Frequency Spectrum")
        return dataset
