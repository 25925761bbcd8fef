#!/usr/bin/env python3
"""
Run an Octave lab program from the command line and print the JSON result.

Usage:
  python -m scripts.run_program lab.m
  python -m scripts.run_program lab.m --mode interpreter
  python -m scripts.run_program lab.m --mode lab --log-level DEBUG

Modes:
  dispatch     backend fallback chain (native / docker / simulation), switches
               read from ENABLE_OCTAVE_NATIVE and ENABLE_OCTAVE_DOCKER
  interpreter  statement interpreter only
  lab          Hermitian symmetry lab executor (interpreter, then demos)
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from backend.octlab.demos import LabExecutor
from backend.octlab.executor import Dispatcher
from backend.octlab.interpreter import Interpreter
from backend.octlab.results import ExecutionConfig, ExecutionResult


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run an Octave lab program")
    p.add_argument("path", help="Program file (.m); '-' reads stdin")
    p.add_argument(
        "--mode",
        choices=("dispatch", "interpreter", "lab"),
        default="dispatch",
        help="Execution path (default: dispatch)",
    )
    p.add_argument("--timeout-ms", type=int, default=None, help="Backend timeout in milliseconds")
    p.add_argument("--memory-limit-mb", type=int, default=None, help="Native backend memory limit")
    p.add_argument("--no-plot", action="store_true", help="Drop plot data from the result")
    p.add_argument("--seed", type=int, default=None, help="Seed for rand/randn in interpreter mode")
    p.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return p.parse_args(argv)


def run(args: argparse.Namespace, code: str) -> ExecutionResult:
    if args.mode == "interpreter":
        result = Interpreter(seed=args.seed).run(code)
        if args.no_plot:
            result.dataset = None
        return result
    if args.mode == "lab":
        return LabExecutor().execute(code)
    config = ExecutionConfig.from_env(
        timeout_ms=args.timeout_ms,
        memory_limit_mb=args.memory_limit_mb,
        plot_output=not args.no_plot,
    )
    return Dispatcher().execute(code, config)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING), stream=sys.stderr)
    if args.path == "-":
        code = sys.stdin.read()
    else:
        code = Path(args.path).read_text(encoding="utf-8")
    result = run(args, code)
    json.dump(result.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
