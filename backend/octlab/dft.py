"""Discrete Fourier transform kernel and spectrum helpers.

The kernel is the direct O(N^2) definition of the DFT. It is shared by the
statement interpreter (`fft(...)` assignments) and by the fixed Hermitian
symmetry demonstrations, so its output must stay bit-for-bit stable: the
demonstration transcripts print errors computed from it.

Complex values are plain Python `complex` numbers. Real signals are any
sequence of floats.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

WINDOWS = ("rectangular", "hanning", "hamming", "blackman", "flattop")


def dft(signal: Sequence[float]) -> List[complex]:
    """Return the DFT of a real signal.

    X[k] = sum_n x[n] * (cos(-2*pi*k*n/N) + i*sin(-2*pi*k*n/N)) for k in [0, N).
    An empty signal yields an empty spectrum.
    """
    n_samples = len(signal)
    out: List[complex] = []
    for k in range(n_samples):
        re = 0.0
        im = 0.0
        for n in range(n_samples):
            angle = -2 * math.pi * k * n / n_samples
            re += signal[n] * math.cos(angle)
            im += signal[n] * math.sin(angle)
        out.append(complex(re, im))
    return out


def lab_conjugate_bin(k: int, n: int) -> int:
    """Return the 1-based partner bin used by the lab transcripts.

    The Hermitian symmetry labs pair bin `k` (1-based) with `N - k + 2`. This
    is kept for compatibility with the published lab output; use
    `hermitian_check` for the standard 0-based `N - k` pairing.
    """
    return n - k + 2


def hermitian_error(spectrum: Sequence[complex], k: int) -> float:
    """|X[k] - conj(X[k_neg])| with `k` and `k_neg` in 1-based lab indexing."""
    k_neg = lab_conjugate_bin(k, len(spectrum))
    return abs(spectrum[k - 1] - spectrum[k_neg - 1].conjugate())


def hermitian_check(spectrum: Sequence[complex]) -> List[Dict[str, object]]:
    """Pair every bin k in [0, N/2] with N-k and report |X[k] - conj(X[N-k])|.

    DC and (for even N) the Nyquist bin are flagged `special` and report a
    zero difference.
    """
    n = len(spectrum)
    pairs: List[Dict[str, object]] = []
    for k in range(n // 2 + 1):
        if n == 0:
            break
        k_conj = 0 if k == 0 else n - k
        special = k == 0 or (n % 2 == 0 and k == n // 2)
        diff = 0.0 if special else abs(spectrum[k] - spectrum[k_conj].conjugate())
        pairs.append(
            {
                "k": k,
                "k_conj": k_conj,
                "xk": spectrum[k],
                "xk_conj": spectrum[k_conj],
                "diff": diff,
                "special": special,
            }
        )
    return pairs


def bin_to_freq(k: int, n: int, fs: float) -> float:
    """Map a bin index to a frequency, wrapping the upper half to negative."""
    if k < n / 2:
        return k * fs / n
    return (k - n) * fs / n


def magnitude(spectrum: Sequence[complex]) -> List[float]:
    return [abs(v) for v in spectrum]


def apply_window(signal: Sequence[float], window: str = "rectangular") -> List[float]:
    """Multiply `signal` by one of the named windows.

    Unknown names fall back to the rectangular window.
    """
    n = len(signal)
    if window not in WINDOWS or window == "rectangular" or n < 2:
        return list(signal)
    out = []
    for i, v in enumerate(signal):
        c1 = math.cos(2 * math.pi * i / (n - 1))
        c2 = math.cos(4 * math.pi * i / (n - 1))
        if window == "hanning":
            w = 0.5 * (1 - c1)
        elif window == "hamming":
            w = 0.54 - 0.46 * c1
        elif window == "blackman":
            w = 0.42 - 0.5 * c1 + 0.08 * c2
        else:
            w = (
                0.21557895
                - 0.41663158 * c1
                + 0.277263158 * c2
                - 0.083578947 * math.cos(6 * math.pi * i / (n - 1))
                + 0.006947368 * math.cos(8 * math.pi * i / (n - 1))
            )
        out.append(v * w)
    return out


def _next_power_of_two(n: int) -> int:
    return 1 if n <= 1 else 2 ** math.ceil(math.log2(n))


def compute_fft(
    signal: Sequence[float],
    fs: float,
    *,
    normalize: bool = True,
    padding: int = 0,
    window: str = "rectangular",
) -> Dict[str, object]:
    """Single-sided spectrum of a real signal.

    Returns a dict with `magnitude`, `phase`, `frequencies` (bins 0..N/2),
    `dc` and `nyquist`. Interior bins are doubled to account for the folded
    negative half. When `padding` > 0 the signal is zero padded to the next
    power of two times 2**padding.
    """
    windowed = apply_window(signal, window)
    size = len(windowed)
    if padding > 0:
        size = _next_power_of_two(len(windowed)) * (2 ** padding)
    padded = windowed + [0.0] * (size - len(windowed))
    spectrum = dft(padded)
    norm = size if normalize else 1
    half = size // 2

    mags: List[float] = []
    phases: List[float] = []
    for i in range(half + 1):
        if i >= size:
            break
        v = spectrum[i]
        if i == 0 or (size % 2 == 0 and i == half):
            # DC and Nyquist are purely real for a real input
            mags.append(abs(v.real) / norm)
        else:
            mags.append(abs(v) * 2 / norm)
        phases.append(math.atan2(v.imag, v.real))
    freqs = [i * fs / size for i in range(len(mags))]
    return {
        "magnitude": mags,
        "phase": phases,
        "frequencies": freqs,
        "dc": mags[0] if mags else 0.0,
        "nyquist": freqs[-1] if freqs else 0.0,
    }


def compute_full_fft(
    signal: Sequence[float], fs: float, *, window: str = "rectangular", normalize: bool = False
) -> Dict[str, object]:
    """Full two-sided spectrum with wrapped negative frequencies."""
    spectrum = dft(apply_window(signal, window))
    n = len(spectrum)
    if normalize and n:
        spectrum = [v / n for v in spectrum]
    return {
        "spectrum": spectrum,
        "magnitude": magnitude(spectrum),
        "phase": [math.atan2(v.imag, v.real) for v in spectrum],
        "frequencies": [bin_to_freq(k, n, fs) for k in range(n)],
        "n": n,
        "fs": fs,
        "window": window,
        "normalized": normalize,
    }


def measure_xk(signal: Sequence[float], k: int) -> complex:
    """(1/N) * sum_n x[n] e^{-j 2 pi k n / N}, a single averaged coefficient."""
    n_samples = len(signal)
    re = 0.0
    im = 0.0
    for n in range(n_samples):
        angle = -2 * math.pi * k * n / n_samples
        re += signal[n] * math.cos(angle)
        im += signal[n] * math.sin(angle)
    return complex(re / n_samples, im / n_samples)


def complex_to_trig(xn: complex) -> Tuple[float, float]:
    """Averaged complex coefficient -> (a, b) with a = 2 Re, b = -2 Im."""
    return 2 * xn.real, -2 * xn.imag


def trig_to_complex(a: float, b: float) -> complex:
    return complex(a / 2, -b / 2)


def partial_sum_complex(
    coefficients: Sequence[complex], n_samples: int, terms: Optional[int] = None
) -> List[float]:
    """Rebuild n_samples points from averaged coefficients X[0..terms).

    x[n] = Re X[0] + sum_{k=1}^{terms-1} 2 (Re X[k] cos(w) - Im X[k] sin(w)),
    w = 2 pi k n / len(coefficients).
    """
    size = len(coefficients)
    limit = min(terms or size, size)
    out: List[float] = []
    for n in range(n_samples):
        acc = coefficients[0].real if size else 0.0
        for k in range(1, limit):
            w = 2 * math.pi * k * n / size
            acc += 2 * (coefficients[k].real * math.cos(w) - coefficients[k].imag * math.sin(w))
        out.append(acc)
    return out


def unwrap_phase(phase: Sequence[float]) -> List[float]:
    """Remove 2*pi jumps between consecutive phase samples."""
    out = list(phase)
    for i in range(1, len(out)):
        diff = out[i] - out[i - 1]
        while diff > math.pi:
            out[i] -= 2 * math.pi
            diff = out[i] - out[i - 1]
        while diff < -math.pi:
            out[i] += 2 * math.pi
            diff = out[i] - out[i - 1]
    return out
