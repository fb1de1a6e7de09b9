"""Tests for ExpressionEvaluator — tree-sitter expression nodes to EvaluatedValue."""

from __future__ import annotations

import dataclasses

from tree_sitter_language_pack import get_parser

from inline_console.environment import Environment
from inline_console.evaluator import ExpressionEvaluator, decode_js_string, parse_js_number
from inline_console.values import (
    UNDEFINED,
    Composite,
    Derived,
    EvaluatedValue,
    FetchKind,
    FetchState,
    FunctionTag,
    Literal,
    Opaque,
    PendingFetch,
    Reference,
    Symbolic,
)


def _eval(expr: str, env: Environment | None = None) -> EvaluatedValue:
    source = f"({expr});".encode("utf-8")
    tree = get_parser("javascript").parse(source)
    statement = tree.root_node.named_children[0]
    node = statement.named_children[0]
    return ExpressionEvaluator(env or Environment(), source).evaluate(node)


class TestDecoding:
    def test_simple_escapes(self):
        assert decode_js_string(r"a\nb\tc") == "a\nb\tc"

    def test_unicode_escapes(self):
        assert decode_js_string(r"A\x42\u{1F600}") == "AB\U0001F600"

    def test_unknown_escape_keeps_character(self):
        assert decode_js_string(r"\q") == "q"

    def test_number_forms(self):
        assert parse_js_number("0x1F") == 31
        assert parse_js_number("0o17") == 15
        assert parse_js_number("1_000") == 1000
        assert parse_js_number("1.5e3") == 1500.0


class TestLiterals:
    def test_string(self):
        assert _eval('"hello"') == Literal("hello")

    def test_single_quoted_string_with_escape(self):
        assert _eval("'a\\nb'") == Literal("a\nb")

    def test_numbers(self):
        assert _eval("42") == Literal(42)
        assert _eval("1.5") == Literal(1.5)
        assert _eval("0x1F") == Literal(31)

    def test_keywords(self):
        assert _eval("true") == Literal(True)
        assert _eval("false") == Literal(False)
        assert _eval("null") == Literal(None)

    def test_undefined(self):
        assert _eval("undefined").render() == "undefined"

    def test_void_zero(self):
        assert _eval("void 0") == Literal(UNDEFINED)

    def test_bigint_degrades_to_opaque(self):
        assert isinstance(_eval("10n"), Opaque)


class TestTemplates:
    def test_plain_template(self):
        assert _eval("`hello`") == Literal("hello")

    def test_substitutions(self):
        env = Environment()
        env.bind("name", Literal("Ada"))
        env.bind("n", Literal(3))
        assert _eval("`${name} has ${n * 2} items!`", env) == Literal(
            "Ada has 6 items!"
        )

    def test_unknown_substitution_keeps_name(self):
        assert _eval("`id=${userId}`") == Literal("id=userId")


class TestIdentifiers:
    def test_bound_variable(self):
        env = Environment()
        env.bind("x", Literal(5))
        assert _eval("x", env) == Literal(5)

    def test_declared_function(self):
        env = Environment()
        env.declare_function("myFunction", "myFunction()")
        assert _eval("myFunction", env) == FunctionTag("myFunction")

    def test_declared_class(self):
        env = Environment()
        env.declare_class("MyClass")
        assert _eval("MyClass", env).render() == "[class MyClass]"

    def test_unknown_name_is_reference(self):
        assert _eval("mystery") == Reference("mystery")


class TestBinaryExpressions:
    def test_arithmetic(self):
        assert _eval("10 + 5 * 2") == Literal(20)

    def test_division(self):
        assert _eval("10 / 4").render() == "2.5"
        assert _eval("1 / 0").render() == "Infinity"
        assert _eval("0 / 0").render() == "NaN"

    def test_string_concatenation(self):
        assert _eval('"a" + 1') == Literal("a1")
        assert _eval('1 + "a"') == Literal("1a")

    def test_symbolic_operand(self):
        assert _eval("x * 2") == Symbolic("x * 2")

    def test_comparison_is_symbolic(self):
        assert _eval("1 < 2").render() == "1 < 2"

    def test_opaque_operand_absorbs(self):
        assert isinstance(_eval("!x + 1"), Opaque)


class TestComposites:
    def test_array(self):
        assert _eval('[1, "a", true]').render() == '[1, "a", true]'

    def test_array_hole(self):
        assert _eval("[1, , 3]").render() == "[1, null, 3]"

    def test_object(self):
        assert _eval('{ name: "Ada", age: 36 }').render() == '{ name: "Ada", age: 36 }'

    def test_empty_object(self):
        assert _eval("{}").render() == "{}"

    def test_computed_key(self):
        assert _eval('{ [k]: 1, a: 2 }').render() == "{ [complex property], a: 2 }"

    def test_shorthand_property(self):
        env = Environment()
        env.bind("count", Literal(4))
        assert _eval("{ count }", env).render() == "{ count: 4 }"

    def test_nested_object_renders_inline(self):
        value = _eval('{ data: { ok: true }, tags: ["x"] }')
        assert value.render() == '{ data: { ok: true }, tags: ["x"] }'


class TestMemberAccess:
    def test_shape_lookup(self):
        env = Environment()
        fields = {"name": Literal("Ada")}
        env.bind("user", Composite(text='{ name: "Ada" }', fields=tuple(fields.items())))
        env.record_shape("user", fields)
        assert _eval("user.name", env) == Literal("Ada")

    def test_array_length_and_index(self):
        env = Environment()
        env.bind("arr", _eval("[1, 2, 3]"))
        assert _eval("arr.length", env) == Literal(3)
        assert _eval("arr[0]", env) == Literal(1)

    def test_nested_member(self):
        env = Environment()
        env.bind("resp", _eval("{ data: { page: 1 } }"))
        assert _eval("resp.data.page", env) == Literal(1)

    def test_unknown_member(self):
        assert _eval("a.b") == Reference("a.b")

    def test_computed_member(self):
        assert _eval("a[i]") == Reference("a.[computed property]")

    def test_complex_object(self):
        assert _eval("f().x") == Reference("[complex object].x")


class TestCalls:
    def test_fetch_is_promise_of_response(self):
        value = _eval('fetch("https://example.com/a")')
        assert value == Symbolic(
            "Promise<Response: https://example.com/a>", url="https://example.com/a"
        )

    def test_awaited_fetch_is_pending(self):
        value = _eval('await fetch("https://example.com/a")')
        assert isinstance(value, PendingFetch)
        assert value.kind == FetchKind.TEXT
        assert value.url == "https://example.com/a"

    def test_body_accessor_on_response(self):
        env = Environment()
        env.bind("r", Symbolic("Promise<Response: u>", url="https://e.com/u"))
        value = _eval("r.json()", env)
        assert isinstance(value, PendingFetch)
        assert value.kind == FetchKind.JSON
        assert value.placeholder == "fetching https://e.com/u…"

    def test_fetch_ids_are_fresh(self):
        env = Environment()
        first = _eval('await fetch("https://e.com")', env)
        second = _eval('await fetch("https://e.com")', env)
        assert first.task_id != second.task_id

    def test_promise_statics(self):
        assert _eval("Promise.resolve(1)").render() == "Promise<resolved: 1>"
        assert _eval('Promise.reject("no")').render() == "Promise<rejected: no>"
        assert _eval("Promise.all([])").render() == "Promise<unknown>"

    def test_then_chain(self):
        assert _eval("fetch(u).then(r => r.json())").render() == "Promise<unknown>"

    def test_awaited_non_fetch(self):
        assert _eval("await thing").render() == "[awaited thing]"

    def test_arithmetic_helper(self):
        env = Environment()
        env.declare_function("add", "add(a, b)")
        assert _eval("add(2, 3)", env) == Literal(5)
        assert _eval("add(x, 1)", env) == Symbolic("add(x, 1)")

    def test_builtin_coercion(self):
        assert _eval('parseInt("42")') == Literal(42)

    def test_builtin_radix(self):
        assert _eval('parseInt("10", 2)') == Literal(2)
        assert _eval('parseInt("10", base)') == Symbolic("parseInt(10, base)")

    def test_unknown_method_call(self):
        assert _eval("obj.method(1, 2)") == Symbolic("obj.method(1, 2)")

    def test_new_promise(self):
        assert _eval("new Promise(r => r(1))").render() == "Promise<unknown>"

    def test_new_other_is_opaque(self):
        assert isinstance(_eval("new Map()"), Opaque)


class TestDegradation:
    def test_async_arrow(self):
        assert _eval("async () => 1").render() == "[async function]"

    def test_plain_arrow_is_opaque(self):
        assert isinstance(_eval("() => 1"), Opaque)

    def test_unary_is_opaque(self):
        assert isinstance(_eval("!flag"), Opaque)

    def test_ternary_is_opaque(self):
        assert isinstance(_eval("a ? 1 : 2"), Opaque)

    def test_none_node(self):
        assert isinstance(ExpressionEvaluator(Environment(), b"").evaluate(None), Opaque)


def _body_env() -> Environment:
    env = Environment()
    env.bind(
        "d",
        PendingFetch(
            task_id="fetch-1",
            url="https://e.com/u",
            kind=FetchKind.TEXT,
            placeholder="fetching https://e.com/u…",
        ),
    )
    return env


class TestFetchDependentValues:
    def test_template_keeps_fetch(self):
        value = _eval("`Data: ${d}!`", _body_env())
        assert isinstance(value, Derived)
        assert value.render() == "Data: fetching https://e.com/u…!"
        assert [part for part, _ in value.fetches()] == [1]

    def test_concatenation_keeps_fetch(self):
        value = _eval('"x" + d + "y"', _body_env())
        assert isinstance(value, Derived)
        assert len(value.segments) == 3

    def test_array_and_object_keep_fetch(self):
        env = _body_env()
        array = _eval("[1, d]", env)
        assert isinstance(array, Derived)
        assert array.render() == "[1, fetching https://e.com/u…]"
        assert array.lookup("0") == Literal(1)
        obj = _eval("({ body: d })", env)
        assert isinstance(obj, Derived)
        assert obj.render() == "{ body: fetching https://e.com/u… }"

    def test_nested_values_flatten(self):
        value = _eval("`${[d]}` + `${d}`", _body_env())
        assert isinstance(value, Derived)
        assert len(value.fetches()) == 2
        assert all(isinstance(seg, (str, PendingFetch)) for seg in value.segments)

    def test_settled_fetch_rerenders(self):
        value = _eval("`Data: ${d}`", _body_env())
        (part, fetch), = value.fetches()
        settled = value.settle(
            part, dataclasses.replace(fetch, state=FetchState.RESOLVED, result="ok")
        )
        assert settled.render() == "Data: ok"

    def test_call_text_keeps_fetch(self):
        value = _eval("show(d)", _body_env())
        assert isinstance(value, Derived)
        assert value.render() == "show(fetching https://e.com/u…)"

    def test_plain_template_stays_literal(self):
        assert _eval("`a ${1} b`") == Literal("a 1 b")
