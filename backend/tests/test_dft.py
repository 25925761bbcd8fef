"""Tests for the DFT kernel and the spectrum helpers built on it."""

import math
import random

import pytest

from backend.octlab.dft import (
    bin_to_freq,
    complex_to_trig,
    compute_fft,
    compute_full_fft,
    dft,
    hermitian_check,
    hermitian_error,
    lab_conjugate_bin,
    measure_xk,
    partial_sum_complex,
    trig_to_complex,
    unwrap_phase,
)


def _sine(bin_k, n, amplitude=1.0):
    return [amplitude * math.sin(2 * math.pi * bin_k * i / n) for i in range(n)]


def test_empty_signal_has_empty_spectrum():
    assert dft([]) == []


def test_impulse_has_flat_spectrum():
    spectrum = dft([1.0, 0.0, 0.0, 0.0])
    assert len(spectrum) == 4
    for v in spectrum:
        assert v.real == pytest.approx(1.0)
        assert v.imag == pytest.approx(0.0, abs=1e-12)


@pytest.mark.parametrize("n", [1, 2, 7, 16, 33])
def test_real_input_is_hermitian_symmetric(n):
    # standard 0-based law: X[N-k] == conj(X[k]) for k in [1, N-1]
    rng = random.Random(n)
    signal = [rng.uniform(-1, 1) for _ in range(n)]
    spectrum = dft(signal)
    for k in range(1, n):
        assert abs(spectrum[n - k] - spectrum[k].conjugate()) < 1e-9


def test_sine_on_bin_concentrates_energy():
    spectrum = dft(_sine(3, 16))
    assert spectrum[3].imag == pytest.approx(-8.0)
    assert spectrum[13].imag == pytest.approx(8.0)
    others = [abs(v) for k, v in enumerate(spectrum) if k not in (3, 13)]
    assert max(others) < 1e-9


def test_lab_pairing_matches_standard_pairing_in_one_based_terms():
    n = 10
    spectrum = dft(_sine(2, n))
    # 1-based k=2 is 0-based bin 1, its lab partner N-k+2 is 0-based N-1
    assert lab_conjugate_bin(2, n) == n
    assert hermitian_error(spectrum, 2) == abs(spectrum[1] - spectrum[n - 1].conjugate())
    assert hermitian_error(spectrum, 2) < 1e-9


def test_hermitian_check_flags_dc_and_nyquist():
    pairs = hermitian_check(dft([1.0, 2.0, 3.0, 4.0]))
    assert [p["k"] for p in pairs] == [0, 1, 2]
    assert [p["k_conj"] for p in pairs] == [0, 3, 2]
    assert pairs[0]["special"] and pairs[2]["special"]
    assert not pairs[1]["special"]
    assert pairs[1]["diff"] < 1e-9


def test_hermitian_check_odd_length_has_no_nyquist():
    pairs = hermitian_check(dft([1.0, 2.0, 3.0]))
    assert [p["special"] for p in pairs] == [True, False]


def test_bin_to_freq_wraps_upper_half():
    assert bin_to_freq(2, 16, 16) == 2.0
    assert bin_to_freq(12, 16, 16) == -4.0


def test_compute_fft_single_sided_amplitude():
    fs = 1000
    n = 100
    signal = [math.sin(2 * math.pi * 50 * i / fs) for i in range(n)]
    out = compute_fft(signal, fs)
    mags = out["magnitude"]
    assert len(mags) == n // 2 + 1
    assert mags.index(max(mags)) == 5
    assert mags[5] == pytest.approx(1.0)
    assert out["frequencies"][5] == pytest.approx(50.0)
    assert out["nyquist"] == pytest.approx(fs / 2)
    assert out["dc"] == pytest.approx(0.0, abs=1e-12)


def test_compute_fft_padding_grows_to_power_of_two():
    out = compute_fft([1.0] * 5, 8, padding=1)
    # next power of two (8) times 2
    assert len(out["magnitude"]) == 16 // 2 + 1


def test_compute_fft_dc_uses_real_part():
    out = compute_fft([2.0, 2.0, 2.0, 2.0], 4)
    assert out["dc"] == pytest.approx(2.0)
    assert out["magnitude"][1] == pytest.approx(0.0, abs=1e-12)


def test_compute_full_fft_normalized():
    out = compute_full_fft([1.0, 1.0, 1.0, 1.0], 4, normalize=True)
    assert out["n"] == 4
    assert out["magnitude"][0] == pytest.approx(1.0)
    assert out["frequencies"] == [0.0, 1.0, -2.0, -1.0]


def test_measure_xk_and_trig_coefficients():
    n = 100
    a, b = complex_to_trig(measure_xk(_sine(5, n), 5))
    assert a == pytest.approx(0.0, abs=1e-9)
    assert b == pytest.approx(1.0)
    assert trig_to_complex(a, b) == pytest.approx(complex(0.0, -0.5), abs=1e-9)


def test_partial_sum_rebuilds_band_limited_signal():
    n = 16
    signal = [0.25 + s + 0.5 * c for s, c in zip(_sine(3, n), _sine(5, n))]
    averaged = [v / n for v in dft(signal)]
    rebuilt = partial_sum_complex(averaged, n, terms=n // 2)
    for original, value in zip(signal, rebuilt):
        assert value == pytest.approx(original, abs=1e-9)


def test_partial_sum_with_few_terms_keeps_only_low_bins():
    n = 16
    averaged = [v / n for v in dft(_sine(5, n))]
    rebuilt = partial_sum_complex(averaged, n, terms=3)
    assert max(abs(v) for v in rebuilt) < 1e-9


def test_unwrap_phase_removes_jumps():
    out = unwrap_phase([0.0, 3.0, -3.0, -2.5])
    assert out[:2] == [0.0, 3.0]
    assert out[2] == pytest.approx(-3.0 + 2 * math.pi)
    for a, b in zip(out, out[1:]):
        assert abs(b - a) <= math.pi
