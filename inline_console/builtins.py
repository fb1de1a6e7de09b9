"""Built-in function implementations for the expression evaluator."""

from __future__ import annotations

import math
import re
from typing import Any

from .operators import Operators
from .values import (
    UNDEFINED,
    EvaluatedValue,
    Literal,
    format_number,
    is_number,
    numeric_value,
)

_UNCOMPUTABLE = Operators.UNCOMPUTABLE

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)")
_RADIX_PREFIXES = {"0x": 16, "0o": 8, "0b": 2}


def _first_literal(args: list[EvaluatedValue]) -> Any:
    if not args or not isinstance(args[0], Literal):
        return _UNCOMPUTABLE
    value = args[0].value
    if isinstance(value, str) or is_number(value):
        return value
    return _UNCOMPUTABLE


def _radix_of(args: list[EvaluatedValue]) -> Any:
    """The radix argument as an integer; 0 when absent or undefined."""
    if len(args) < 2:
        return 0
    radix = args[1]
    if isinstance(radix, Literal) and radix.value is UNDEFINED:
        return 0
    number = numeric_value(radix)
    if number is None:
        return _UNCOMPUTABLE
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number)


def _builtin_parse_int(args: list[EvaluatedValue]) -> Any:
    value = _first_literal(args)
    radix = _radix_of(args)
    if value is _UNCOMPUTABLE or radix is _UNCOMPUTABLE:
        return _UNCOMPUTABLE
    text = format_number(value) if is_number(value) else value
    text = text.strip()
    sign = 1
    if text and text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if radix in (0, 16) and text[:2].lower() == "0x":
        text = text[2:]
        radix = 16
    elif radix == 0:
        radix = 10
    if not 2 <= radix <= 36:
        return math.nan
    valid = _DIGITS[:radix]
    end = 0
    while end < len(text) and text[end].lower() in valid:
        end += 1
    if end == 0:
        return math.nan
    return sign * int(text[:end], radix)


def _builtin_parse_float(args: list[EvaluatedValue]) -> Any:
    value = _first_literal(args)
    if value is _UNCOMPUTABLE:
        return _UNCOMPUTABLE
    if is_number(value):
        return value
    text = value.strip()
    if text.lstrip("+-").startswith("Infinity"):
        return -math.inf if text.startswith("-") else math.inf
    match = _FLOAT_PREFIX_RE.match(text)
    if match is None:
        return math.nan
    parsed = float(match.group(0))
    return int(parsed) if parsed.is_integer() and "." not in match.group(0) else parsed


def _builtin_string(args: list[EvaluatedValue]) -> Any:
    if not args:
        return ""
    value = args[0]
    if isinstance(value, Literal):
        return value.render()
    return _UNCOMPUTABLE


def _builtin_number(args: list[EvaluatedValue]) -> Any:
    if not args:
        return 0
    value = _first_literal(args)
    if value is _UNCOMPUTABLE:
        return _UNCOMPUTABLE
    if is_number(value):
        return value
    # JS rejects numeric separators in strings; Python's float() accepts them.
    text = value.strip().replace("_", "\0")
    if not text:
        return 0
    prefix = text[:2].lower()
    if prefix in _RADIX_PREFIXES:
        try:
            return int(text[2:], _RADIX_PREFIXES[prefix])
        except ValueError:
            return math.nan
    if text.lstrip("+-") == "Infinity":
        return -math.inf if text.startswith("-") else math.inf
    if text.lower().lstrip("+-") in ("inf", "infinity", "nan"):
        return math.nan
    try:
        parsed = float(text)
    except ValueError:
        return math.nan
    return int(parsed) if parsed.is_integer() and abs(parsed) < 2**53 else parsed


class Builtins:
    """Table of built-in numeric/string coercions."""

    TABLE: dict[str, Any] = {
        "parseInt": _builtin_parse_int,
        "parseFloat": _builtin_parse_float,
        "String": _builtin_string,
        "Number": _builtin_number,
    }

    @classmethod
    def call(cls, name: str, args: list[EvaluatedValue]) -> EvaluatedValue | None:
        """Evaluate a builtin; None when the result is not a reportable value."""
        fn = cls.TABLE.get(name)
        if fn is None:
            return None
        result = fn(args)
        if result is _UNCOMPUTABLE:
            return None
        if is_number(result) and math.isnan(result):
            return None
        return Literal(result)


# ── Arithmetic helpers ───────────────────────────────────────────

ARITHMETIC_HELPERS: dict[str, str] = {
    "add": "+",
    "subtract": "-",
    "multiply": "*",
    "divide": "/",
}


def call_arithmetic_helper(
    name: str, args: list[EvaluatedValue]
) -> EvaluatedValue | None:
    """Compute add/subtract/multiply/divide for two numeric arguments."""
    op = ARITHMETIC_HELPERS.get(name)
    if op is None or len(args) != 2:
        return None
    lhs, rhs = numeric_value(args[0]), numeric_value(args[1])
    if lhs is None or rhs is None:
        return None
    if op == "/" and rhs == 0:
        return None
    result = Operators.eval_binop(op, lhs, rhs)
    if result is Operators.UNCOMPUTABLE:
        return None
    return Literal(result)
