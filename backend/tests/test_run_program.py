"""Tests for the command-line runner."""

import json

from scripts import run_program


def test_interpreter_mode_prints_json(tmp_path, capsys):
    program = tmp_path / "lab.m"
    program.write_text("a = 6\nfprintf('%d\\n', a * 7)\n", encoding="utf-8")
    rc = run_program.main([str(program), "--mode", "interpreter"])
    body = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert body["success"] is True
    assert body["output"] == ["42"]


def test_dispatch_mode_simulates(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("ENABLE_OCTAVE_NATIVE", raising=False)
    monkeypatch.delenv("ENABLE_OCTAVE_DOCKER", raising=False)
    program = tmp_path / "lab.m"
    program.write_text("fs = 1000;\nplot(t, x)\n", encoding="utf-8")
    rc = run_program.main([str(program), "--no-plot"])
    body = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert body["output"][0].endswith("(simulated)...")
    assert "data" not in body


def test_failing_run_exits_nonzero(tmp_path, capsys):
    program = tmp_path / "lab.m"
    program.write_text("t = 0:1:1e9\n", encoding="utf-8")
    rc = run_program.main([str(program), "--mode", "interpreter"])
    body = json.loads(capsys.readouterr().out)
    assert rc == 1
    assert body["success"] is False
