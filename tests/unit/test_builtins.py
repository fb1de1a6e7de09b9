"""Tests for operator evaluation, builtin coercions and arithmetic helpers."""

from __future__ import annotations

import math

from inline_console.builtins import Builtins, call_arithmetic_helper
from inline_console.operators import Operators
from inline_console.values import Literal, Reference


class TestOperators:
    def test_exact_integer_division(self):
        assert Operators.eval_binop("/", 6, 3) == 2
        assert isinstance(Operators.eval_binop("/", 6, 3), int)

    def test_fractional_division(self):
        assert Operators.eval_binop("/", 7, 2) == 3.5

    def test_division_by_zero(self):
        assert Operators.eval_binop("/", 1, 0) == math.inf
        assert Operators.eval_binop("/", -1, 0) == -math.inf
        assert math.isnan(Operators.eval_binop("/", 0, 0))

    def test_unknown_operator_is_uncomputable(self):
        assert Operators.eval_binop("%", 7, 2) is Operators.UNCOMPUTABLE

    def test_type_error_is_uncomputable(self):
        assert Operators.eval_binop("-", "a", 1) is Operators.UNCOMPUTABLE

    def test_large_integers_collapse_to_double(self):
        result = Operators.eval_binop("*", 2**53, 4)
        assert isinstance(result, float)


class TestBuiltins:
    def test_parse_int(self):
        assert Builtins.call("parseInt", [Literal("42px")]) == Literal(42)

    def test_parse_int_hex(self):
        assert Builtins.call("parseInt", [Literal("0x1F")]) == Literal(31)

    def test_parse_int_radix(self):
        assert Builtins.call("parseInt", [Literal("10"), Literal(2)]) == Literal(2)
        assert Builtins.call("parseInt", [Literal("ff"), Literal(16)]) == Literal(255)
        assert Builtins.call("parseInt", [Literal("0x1f"), Literal(16)]) == Literal(31)
        assert Builtins.call("parseInt", [Literal("z1"), Literal(36)]) == Literal(1261)

    def test_parse_int_radix_stops_at_invalid_digit(self):
        assert Builtins.call("parseInt", [Literal("1012"), Literal(2)]) == Literal(5)

    def test_parse_int_out_of_range_radix(self):
        assert Builtins.call("parseInt", [Literal("10"), Literal(1)]) is None
        assert Builtins.call("parseInt", [Literal("10"), Literal(37)]) is None

    def test_parse_int_zero_radix_means_decimal(self):
        assert Builtins.call("parseInt", [Literal("10"), Literal(0)]) == Literal(10)

    def test_parse_int_unknown_radix_is_uncomputable(self):
        assert Builtins.call("parseInt", [Literal("10"), Reference("base")]) is None

    def test_parse_int_number_argument(self):
        assert Builtins.call("parseInt", [Literal(3.9)]) == Literal(3)
        assert Builtins.call("parseInt", [Literal(11), Literal(2)]) == Literal(3)

    def test_parse_int_nan_is_not_reportable(self):
        assert Builtins.call("parseInt", [Literal("abc")]) is None

    def test_parse_float(self):
        assert Builtins.call("parseFloat", [Literal("3.14abc")]) == Literal(3.14)

    def test_string(self):
        assert Builtins.call("String", [Literal(123)]) == Literal("123")

    def test_number(self):
        assert Builtins.call("Number", [Literal("456")]) == Literal(456)
        assert Builtins.call("Number", [Literal("")]) == Literal(0)
        assert Builtins.call("Number", [Literal("0b101")]) == Literal(5)

    def test_number_rejects_numeric_separators(self):
        assert Builtins.call("Number", [Literal("1_000")]) is None

    def test_symbolic_argument_is_uncomputable(self):
        assert Builtins.call("parseInt", [Reference("x")]) is None

    def test_unknown_builtin(self):
        assert Builtins.call("eval", [Literal("1")]) is None


class TestArithmeticHelpers:
    def test_add(self):
        assert call_arithmetic_helper("add", [Literal(10), Literal(20)]) == Literal(30)

    def test_multiply(self):
        assert call_arithmetic_helper("multiply", [Literal(5), Literal(3)]) == Literal(15)

    def test_divide_exact(self):
        assert call_arithmetic_helper("divide", [Literal(100), Literal(4)]) == Literal(25)

    def test_divide_by_zero_not_computed(self):
        assert call_arithmetic_helper("divide", [Literal(1), Literal(0)]) is None

    def test_non_numeric_argument(self):
        assert call_arithmetic_helper("add", [Literal("a"), Literal(1)]) is None

    def test_wrong_arity(self):
        assert call_arithmetic_helper("add", [Literal(1)]) is None

    def test_unknown_helper(self):
        assert call_arithmetic_helper("power", [Literal(2), Literal(3)]) is None
