"""Scalar arithmetic evaluation for the interpreter.

Expressions are parsed with `ast` and evaluated by a whitelisting visitor:
numbers, names bound to scalars, `+ - * / ^`, unary signs, parentheses and
calls into the read-only helper table. Nothing else is accepted, so there is
no route to general dynamic evaluation.

`evaluate` applies a `FallbackPolicy`: by default any failure yields `0`
(the interpreter's documented behaviour for unresolvable expressions);
`FallbackPolicy.RAISE` surfaces the `EvalError` instead, which the tests use
to check individual failures.
"""

import ast
import math
import sys
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

# Constants and scalar functions visible to every expression. Read-only and
# shared; holds no per-run data.
HELPERS: Mapping[str, Any] = MappingProxyType(
    {
        "pi": math.pi,
        "e": math.e,
        "eps": sys.float_info.epsilon,
        "Inf": math.inf,
        "inf": math.inf,
        "sqrt": math.sqrt,
        "abs": abs,
        "exp": math.exp,
        "log": math.log,
        "log10": math.log10,
        "log2": math.log2,
        "floor": math.floor,
        "ceil": math.ceil,
        "round": lambda x: math.copysign(math.floor(abs(x) + 0.5), x),
        "fix": math.trunc,
        "mod": lambda a, b: a - math.floor(a / b) * b,
        "rem": math.fmod,
    }
)

MAX_EXPONENT = 64


class EvalError(Exception):
    """Raised when an arithmetic expression cannot be evaluated.

    Attributes:
        column: optional 1-based column of the failure within the expression
        text: optional original expression text
    """

    def __init__(self, message: str, *, column: Optional[int] = None, text: Optional[str] = None):
        super().__init__(message)
        self.column = column
        self.text = text


class FallbackPolicy(Enum):
    ZERO = "zero"
    RAISE = "raise"


class ScalarEvaluator(ast.NodeVisitor):
    """Evaluate a parsed expression against a mapping of scalar names."""

    def __init__(self, env: Mapping[str, float], helpers: Mapping[str, Any] = HELPERS):
        self.env = env
        self.helpers = helpers

    def visit_Expression(self, node):
        return self.visit(node.body)

    def visit_BinOp(self, node):
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if isinstance(node.op, ast.Div):
            return left / right
        if isinstance(node.op, ast.Pow):
            if abs(right) > MAX_EXPONENT:
                raise EvalError(f"Exponent too large; max {MAX_EXPONENT}")
            return left ** right
        raise EvalError(f"Unsupported binary op {type(node.op).__name__}")

    def visit_UnaryOp(self, node):
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.UAdd):
            return +operand
        if isinstance(node.op, ast.USub):
            return -operand
        raise EvalError("Unsupported unary op")

    def visit_Constant(self, node):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise EvalError("Only numeric literals are supported")
        return node.value

    def visit_Name(self, node):
        if node.id in self.env:
            return self.env[node.id]
        value = self.helpers.get(node.id)
        if isinstance(value, (int, float)):
            return value
        raise EvalError(f"Undefined variable '{node.id}'")

    def visit_Call(self, node):
        if not isinstance(node.func, ast.Name) or node.keywords:
            raise EvalError("Unsupported call target")
        fn = self.helpers.get(node.func.id)
        if not callable(fn):
            raise EvalError(f"Unsupported function '{node.func.id}'")
        args = [self.visit(a) for a in node.args]
        return fn(*args)

    def generic_visit(self, node):
        raise EvalError(f"Unsupported expression: {type(node).__name__}")


def _to_python(expr: str) -> str:
    # Octave power and elementwise operators map onto the scalar ones
    return expr.replace(".^", "^").replace(".*", "*").replace("./", "/").replace("^", "**")


def eval_scalar(expr: str, env: Mapping[str, float], helpers: Mapping[str, Any] = HELPERS) -> float:
    """Parse and evaluate `expr`, raising `EvalError` on any failure."""
    text = _to_python(expr.strip())
    try:
        tree = ast.parse(text, mode="eval")
    except (SyntaxError, ValueError) as e:
        col = int(getattr(e, "offset", None) or 1)
        raise EvalError("Syntax error in expression", column=col, text=expr) from e

    evaluator = ScalarEvaluator(env, helpers)
    try:
        value = evaluator.visit(tree)
        if isinstance(value, complex):
            raise EvalError("Complex result", text=expr)
        # integer results can still be too large for a float
        return float(value)
    except EvalError:
        raise
    except Exception as e:
        # ZeroDivisionError, OverflowError, math domain errors, bad arity...
        raise EvalError(str(e), text=expr) from e


def evaluate(
    expr: str,
    env: Mapping[str, float],
    policy: FallbackPolicy = FallbackPolicy.ZERO,
    helpers: Mapping[str, Any] = HELPERS,
) -> float:
    """Evaluate `expr`; under `FallbackPolicy.ZERO` failures yield 0.0."""
    try:
        return eval_scalar(expr, env, helpers)
    except EvalError:
        if policy is FallbackPolicy.RAISE:
            raise
        return 0.0

