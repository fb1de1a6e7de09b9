"""Arithmetic with JavaScript number semantics and an explicit UNCOMPUTABLE sentinel."""

from __future__ import annotations

import math
from typing import Any


def _js_divide(a: int | float, b: int | float) -> int | float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        # Sign of zero divisor is not tracked; -0 never comes out of the evaluator.
        return math.inf if a > 0 else -math.inf
    result = a / b
    if isinstance(a, int) and isinstance(b, int) and result.is_integer():
        return int(result)
    return result


def _as_double(value: int | float) -> int | float:
    """Collapse integers beyond the exact double range the way JS would."""
    if isinstance(value, int) and abs(value) > 2**53:
        return float(value)
    return value


class Operators:
    """Binary operator evaluation over JS numbers."""

    class _Uncomputable:
        """Sentinel value indicating an operation could not be computed."""

        def __repr__(self) -> str:
            return "UNCOMPUTABLE"

    UNCOMPUTABLE = _Uncomputable()

    ARITHMETIC_OPERATORS: frozenset[str] = frozenset({"+", "-", "*", "/"})

    BINOP_TABLE: dict[str, Any] = {
        "+": lambda a, b: a + b,
        "-": lambda a, b: a - b,
        "*": lambda a, b: a * b,
        "/": _js_divide,
    }

    @classmethod
    def eval_binop(cls, op: str, lhs: Any, rhs: Any) -> Any:
        fn = cls.BINOP_TABLE.get(op)
        if fn is None:
            return cls.UNCOMPUTABLE
        try:
            return _as_double(fn(lhs, rhs))
        except (ArithmeticError, TypeError):
            return cls.UNCOMPUTABLE
