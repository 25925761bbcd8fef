"""Tests for the Hermitian symmetry lab executor and its fixed demonstrations."""

import pytest

from backend.octlab.demos import (
    N,
    RECONSTRUCTION_TERMS,
    DemoKind,
    LabExecutor,
    resolve_demo_kind,
)
from backend.octlab.interpreter import Interpreter


def failing_interpreter():
    # no statement budget, so any program with a statement fails
    it = Interpreter()
    it.max_steps = 0
    return it


def lab(code):
    return LabExecutor(failing_interpreter).execute(code)


@pytest.mark.parametrize(
    "code, kind",
    [
        ("% Lab 4.1: Basic Hermitian Symmetry", DemoKind.BASIC),
        ("% Lab 4.2: Two-Tone Signal Symmetry", DemoKind.TWO_TONE),
        ("% Lab 4.3: Complex to Trigonometric Conversion", DemoKind.TRIGONOMETRIC),
        ("% Lab 4.4: Signal Reconstruction", DemoKind.RECONSTRUCTION),
        ("% Lab 4.1: Basic Hermitian Symmetry\n% Lab 4.4: Signal Reconstruction", DemoKind.BASIC),
        ("% Lab 4.3: Complex to Trigonometric Conversion\n% Lab 4.2: Two-Tone Signal Symmetry", DemoKind.TWO_TONE),
        ("% Lab 4.4: Signal Reconstruction\n% HERMITIAN SYMMETRY CHECK", DemoKind.RECONSTRUCTION),
        ("% === HERMITIAN SYMMETRY CHECK ===", DemoKind.BASIC),
        ("% TWO-TONE SYMMETRY CHECK", DemoKind.TWO_TONE),
        ("% TRIGONOMETRIC COEFFICIENTS", DemoKind.TRIGONOMETRIC),
        ("% SIGNAL RECONSTRUCTION", DemoKind.RECONSTRUCTION),
        ("% HERMITIAN SYMMETRY CHECK\n% SIGNAL RECONSTRUCTION", DemoKind.RECONSTRUCTION),
        ("% lab 4.1: basic hermitian symmetry", None),
        ("x = 1", None),
    ],
)
def test_resolve_demo_kind(code, kind):
    assert resolve_demo_kind(code) is kind


def test_interpreter_success_is_returned_unmodified():
    code = "% Lab 4.1: Basic Hermitian Symmetry\na = 2\nfprintf('%d\\n', a)"
    res = LabExecutor().execute(code)
    assert res.success
    assert res.transcript == ["2"]
    assert res.dataset is None


def test_basic_demo_transcript_and_dataset():
    res = lab("% Lab 4.1: Basic Hermitian Symmetry\nx = 1")
    assert res.success
    out = res.transcript
    assert out[0] == "=== HERMITIAN SYMMETRY DEMONSTRATION ==="
    assert "Frequency resolution: 2.00 Hz" in out
    assert "Nyquist frequency: 500.0 Hz" in out
    rows = [line for line in out if line.startswith("Bin ")]
    assert len(rows) == 7
    assert rows[0].startswith(f"Bin 1: |X[1] - conj(X[{N - 1}])| = ")
    assert rows[-1].startswith(f"Bin 7: |X[7] - conj(X[{N - 7}])| = ")
    assert any(line.startswith("Maximum symmetry error: ") for line in out)
    assert "At signal frequency 50 Hz (bin 25):" in out
    assert "X[25] = 0.000000 + -250.000000i" in out
    assert "conj(X[475]) = 0.000000 + -250.000000i" in out

    assert set(res.dataset) == {"time", "frequency"}
    assert res.dataset["time"].label == "Sine Wave Signal"
    assert len(res.dataset["time"].x) == N
    freq = res.dataset["frequency"]
    assert len(freq.x) == N // 2
    assert freq.x[freq.y.index(max(freq.y))] == pytest.approx(50.0)


def test_two_tone_demo_checks_each_component():
    res = lab("disp('Lab 4.2: Two-Tone Signal Symmetry')")
    assert res.success
    out = res.transcript
    assert "Signal: sin(2π*30t) + 0.5*cos(2π*80t)" in out
    assert "--- Component 1 (sine at 30 Hz) ---" in out
    assert "X[15] = 0.000 + -250.000i" in out
    assert "X[485] = 0.000 + 250.000i" in out
    assert "--- Component 2 (cosine at 80 Hz) ---" in out
    assert "X[40] = 125.000 + 0.000i" in out
    assert out[-1] == "CONCLUSION: Multi-component symmetry verified! ✓"
    freq = res.dataset["frequency"]
    assert freq.x[freq.y.index(max(freq.y))] == pytest.approx(30.0)


def test_trigonometric_demo_coefficients():
    res = lab("% Lab 4.3: Complex to Trigonometric Conversion\nx = 1")
    assert res.success
    out = res.transcript
    assert "Signal: cos(2π*40t) + 0.5*sin(2π*90t)" in out
    assert "X[20] = 250.000 + 0.000i" in out
    assert "a_20 = 2*real(X[20])/N = 1.000 (cosine coeff)" in out
    assert "Actual:   a_20 = 1.000, b_20 = 0.000" in out
    assert "X[45] = 0.000 + -125.000i" in out
    assert "b_45 = -2*imag(X[45])/N = 0.500 (sine coeff)" in out
    assert out[-2] == "Complex FFT coefficients convert to real trigonometric form! ✓"
    coeffs = res.dataset["coefficients"]
    assert coeffs.x == ["a_20", "b_20", "a_45", "b_45"]
    assert coeffs.y == pytest.approx([1.0, 0.0, 0.0, 0.5], abs=1e-9)


def test_reconstruction_demo_is_exact():
    res = lab("% Lab 4.4: Signal Reconstruction\nx = 1")
    assert res.success
    out = res.transcript
    rows = [line for line in out if line[:1].isdigit()]
    assert len(rows) == 10
    assert rows[0].startswith("1\t2.0\t\t")
    assert f"Harmonics used: {RECONSTRUCTION_TERMS - 1} of {N // 2}" in out
    assert out[-1] == "CONCLUSION: Perfect reconstruction achieved! ✓"
    assert set(res.dataset) == {"time", "reconstructed", "error"}
    assert min(res.dataset["error"].y) >= 0.0
    assert max(res.dataset["error"].y) < 1e-9
    assert res.dataset["reconstructed"].y == pytest.approx(res.dataset["time"].y, abs=1e-9)


def test_generic_fallback_without_marker():
    res = lab("fs = 8000;\ny = sin(2*pi*f*t);\nY = fft(y);")
    assert res.success
    assert res.dataset is None
    assert res.transcript == [
        ">> Running Hermitian symmetry demonstration...",
        ">> Sampling frequency: 8000 Hz",
        ">> Generating signal...",
        ">> Computing frequency analysis...",
        ">> Hermitian symmetry verified successfully",
    ]


def test_generic_fallback_minimal():
    res = lab("a = 1")
    assert res.transcript == [
        ">> Running Hermitian symmetry demonstration...",
        ">> Sampling frequency: 1000 Hz",
        ">> Hermitian symmetry verified successfully",
    ]
    assert res.execution_time_ms is not None


def test_demonstration_error_becomes_failing_result(monkeypatch):
    from backend.octlab import demos

    def broken():
        raise RuntimeError("demo exploded")

    monkeypatch.setitem(demos.DEMOS, DemoKind.BASIC, broken)
    res = lab("% Lab 4.1: Basic Hermitian Symmetry\nx = 1")
    assert not res.success
    assert res.error_message == "demo exploded"
    assert res.transcript == [">> Error: demo exploded"]
