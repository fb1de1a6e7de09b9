"""ExpressionEvaluator — best-effort partial evaluation of tree-sitter expression nodes.

Dispatch is table-driven on ``node.type``. Unknown node types and any failure
inside a handler degrade to ``Opaque``; ``evaluate`` never raises.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Callable

from . import constants
from .builtins import Builtins, call_arithmetic_helper
from .environment import Environment
from .operators import Operators
from .values import (
    UNDEFINED,
    Composite,
    Derived,
    EvaluatedValue,
    FetchKind,
    FunctionTag,
    Literal,
    Opaque,
    PendingFetch,
    Reference,
    Symbolic,
    derive,
    numeric_value,
    text_piece,
)

logger = logging.getLogger(__name__)

_ESCAPE_RE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])"
)
_SIMPLE_ESCAPES: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_LINE_CONTINUATIONS = frozenset({"\n", "\r", "\r\n", "\u2028", "\u2029"})
_LEGACY_OCTAL_RE = re.compile(r"0[0-7]+")
_DECIMAL_INT_RE = re.compile(r"\d+")


def _decode_escape(match: re.Match) -> str:
    esc = match.group(1)
    if esc.startswith("u{"):
        return chr(int(esc[2:-1], 16))
    if esc[0] in ("u", "x") and len(esc) > 1:
        return chr(int(esc[1:], 16))
    if esc in _LINE_CONTINUATIONS:
        return ""
    return _SIMPLE_ESCAPES.get(esc, esc)


def decode_js_string(raw: str) -> str:
    """Decode the escape sequences of a JS string body (quotes already stripped)."""
    return _ESCAPE_RE.sub(_decode_escape, raw)


def parse_js_number(text: str) -> int | float:
    """Parse a JS numeric literal. BigInt literals raise ValueError."""
    cleaned = text.replace("_", "")
    if cleaned.endswith("n"):
        raise ValueError(f"BigInt literal not supported: {text}")
    if cleaned[:2].lower() in ("0x", "0o", "0b"):
        return int(cleaned, 0)
    if _LEGACY_OCTAL_RE.fullmatch(cleaned):
        return int(cleaned, 8)
    if _DECIMAL_INT_RE.fullmatch(cleaned):
        return int(cleaned)
    return float(cleaned)


class ExpressionEvaluator:
    """Evaluates expression nodes against an Environment.

    The evaluator only reads the environment, except for drawing fresh
    fetch ids when a body accessor creates a ``PendingFetch``.
    """

    FUNCTION_LITERAL_TYPES: frozenset[str] = frozenset(
        {"arrow_function", "function_expression", "function", "generator_function"}
    )

    def __init__(self, env: Environment, source: bytes):
        self._env = env
        self._source = source
        self._EXPR_DISPATCH: dict[str, Callable] = {
            "string": self._eval_string,
            "number": self._eval_number,
            "true": lambda _: Literal(True),
            "false": lambda _: Literal(False),
            "null": lambda _: Literal(None),
            "undefined": lambda _: Literal(UNDEFINED),
            "template_string": self._eval_template_string,
            "identifier": self._eval_identifier,
            "shorthand_property_identifier": self._eval_identifier,
            "unary_expression": self._eval_unary,
            "array": self._eval_array,
            "object": self._eval_object,
            "member_expression": self._eval_member,
            "subscript_expression": self._eval_subscript,
            "binary_expression": self._eval_binary,
            "parenthesized_expression": self._eval_paren,
            "await_expression": self._eval_await,
            "call_expression": self._eval_call,
            "new_expression": self._eval_new,
        }
        for literal_type in self.FUNCTION_LITERAL_TYPES:
            self._EXPR_DISPATCH[literal_type] = self._eval_function_literal

    # ── entry point ──────────────────────────────────────────────

    def evaluate(self, node) -> EvaluatedValue:
        """Return exactly one EvaluatedValue for *node*."""
        if node is None:
            return Opaque()
        handler = self._EXPR_DISPATCH.get(node.type)
        if handler is None:
            logger.debug("No evaluator for %s — opaque", node.type)
            return Opaque()
        try:
            return handler(node)
        except Exception:
            logger.debug("Evaluating %s failed — opaque", node.type, exc_info=True)
            return Opaque()

    def evaluate_arguments(self, args_node) -> list[EvaluatedValue]:
        if args_node is None:
            return []
        if args_node.type == "template_string":
            return [self.evaluate(args_node)]
        return [
            self.evaluate(child)
            for child in args_node.named_children
            if child.type != "comment"
        ]

    # ── helpers ──────────────────────────────────────────────────

    def _node_text(self, node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    def _slice(self, start: int, end: int) -> str:
        return self._source[start:end].decode("utf-8")

    def lookup_identifier(self, name: str) -> EvaluatedValue:
        """Variables first, then declared functions, then declared classes."""
        if name in self._env.variables:
            return self._env.variables[name]
        if name in self._env.functions:
            return FunctionTag(name=name)
        if name in self._env.classes:
            return self._env.classes[name]
        return Reference(name=name)

    def _known_fields(self, obj_node) -> Composite | Derived | dict | None:
        """Locate the field record behind an object expression, if any."""
        if obj_node.type == "identifier":
            name = self._node_text(obj_node)
            shape = self._env.object_shapes.get(name)
            if shape is not None:
                return shape
            value = self._env.variables.get(name)
            return value if isinstance(value, (Composite, Derived)) else None
        if obj_node.type in ("member_expression", "subscript_expression"):
            value = self.evaluate(obj_node)
            return value if isinstance(value, (Composite, Derived)) else None
        return None

    def _object_text(self, obj_node) -> str:
        if obj_node.type == "identifier":
            return self._node_text(obj_node)
        return constants.COMPLEX_OBJECT

    def _member_text(self, node) -> str:
        obj_node = node.child_by_field_name("object")
        prop_node = node.child_by_field_name("property")
        prop_text = (
            self._node_text(prop_node)
            if prop_node is not None and prop_node.type == "property_identifier"
            else constants.COMPUTED_PROPERTY
        )
        return f"{self._object_text(obj_node)}.{prop_text}"

    @staticmethod
    def _call_text(callee: str, args: list[EvaluatedValue]) -> EvaluatedValue:
        pieces: list = [f"{callee}("]
        for i, arg in enumerate(args):
            if i:
                pieces.append(", ")
            pieces.append(text_piece(arg))
        pieces.append(")")
        return derive(pieces) or Symbolic(text="".join(pieces))

    # ── literals ─────────────────────────────────────────────────

    def _eval_string(self, node) -> EvaluatedValue:
        text = self._node_text(node)
        return Literal(decode_js_string(text[1:-1]))

    def _eval_number(self, node) -> EvaluatedValue:
        return Literal(parse_js_number(self._node_text(node)))

    def _eval_template_string(self, node) -> EvaluatedValue:
        parts: list = []
        cursor = node.start_byte + 1
        for child in node.children:
            if child.type != "template_substitution":
                continue
            parts.append(decode_js_string(self._slice(cursor, child.start_byte)))
            inner = next(
                (c for c in child.named_children if c.type != "comment"), None
            )
            parts.append(text_piece(self.evaluate(inner)))
            cursor = child.end_byte
        parts.append(decode_js_string(self._slice(cursor, node.end_byte - 1)))
        return derive(parts) or Literal("".join(parts))

    def _eval_identifier(self, node) -> EvaluatedValue:
        return self.lookup_identifier(self._node_text(node))

    def _eval_unary(self, node) -> EvaluatedValue:
        op_node = node.child_by_field_name("operator")
        arg_node = node.child_by_field_name("argument")
        if (
            op_node is not None
            and arg_node is not None
            and self._node_text(op_node) == "void"
            and self._node_text(arg_node) == "0"
        ):
            return Literal(UNDEFINED)
        return Opaque()

    def _eval_paren(self, node) -> EvaluatedValue:
        inner = next((c for c in node.named_children if c.type != "comment"), None)
        return self.evaluate(inner)

    # ── composites ───────────────────────────────────────────────

    def _eval_array(self, node) -> EvaluatedValue:
        rendered: list = []
        fields: list[tuple[str, EvaluatedValue]] = []
        expecting_element = True
        for child in node.children:
            if child.type == ",":
                if expecting_element:
                    fields.append((str(len(fields)), Literal(None)))
                    rendered.append("null")
                expecting_element = True
                continue
            if not child.is_named or child.type == "comment":
                continue
            value = self.evaluate(child)
            fields.append((str(len(fields)), value))
            rendered.append(text_piece(value, nested=True))
            expecting_element = False
        fields.append(("length", Literal(len(rendered))))
        pieces: list = ["["]
        for i, piece in enumerate(rendered):
            if i:
                pieces.append(", ")
            pieces.append(piece)
        pieces.append("]")
        return _composite(pieces, tuple(fields))

    def _eval_object(self, node) -> EvaluatedValue:
        entries: list = []
        fields: dict[str, EvaluatedValue] = {}
        for child in node.named_children:
            if child.type == "comment":
                continue
            if child.type == "pair":
                key_node = child.child_by_field_name("key")
                if key_node is None or key_node.type != "property_identifier":
                    entries.append(constants.COMPLEX_PROPERTY)
                    continue
                key = self._node_text(key_node)
                value = self.evaluate(child.child_by_field_name("value"))
            elif child.type == "shorthand_property_identifier":
                key = self._node_text(child)
                value = self.lookup_identifier(key)
            else:
                entries.append(constants.COMPLEX_PROPERTY)
                continue
            fields[key] = value
            entries.append((f"{key}: ", text_piece(value, nested=True)))
        if not entries:
            return Composite(text="{}", fields=())
        pieces: list = ["{ "]
        for i, entry in enumerate(entries):
            if i:
                pieces.append(", ")
            pieces.extend(entry if isinstance(entry, tuple) else (entry,))
        pieces.append(" }")
        return _composite(pieces, tuple(fields.items()))

    # ── member access ────────────────────────────────────────────

    def _eval_member(self, node) -> EvaluatedValue:
        obj_node = node.child_by_field_name("object")
        prop_node = node.child_by_field_name("property")
        if prop_node is not None and prop_node.type == "property_identifier":
            known = self._known_fields(obj_node)
            key = self._node_text(prop_node)
            found = _field_of(known, key)
            if found is not None:
                return found
        return Reference(name=self._member_text(node))

    def _eval_subscript(self, node) -> EvaluatedValue:
        obj_node = node.child_by_field_name("object")
        index = self.evaluate(node.child_by_field_name("index"))
        if isinstance(index, Literal) and isinstance(index.value, (str, int)):
            key = index.render()
            found = _field_of(self._known_fields(obj_node), key)
            if found is not None:
                return found
        return Reference(
            name=f"{self._object_text(obj_node)}.{constants.COMPUTED_PROPERTY}"
        )

    # ── operators ────────────────────────────────────────────────

    def _eval_binary(self, node) -> EvaluatedValue:
        left = self.evaluate(node.child_by_field_name("left"))
        right = self.evaluate(node.child_by_field_name("right"))
        op = self._node_text(node.child_by_field_name("operator"))
        return self.apply_binary(op, left, right)

    def apply_binary(
        self, op: str, left: EvaluatedValue, right: EvaluatedValue
    ) -> EvaluatedValue:
        """Combine two evaluated operands; shared with compound assignment."""
        if isinstance(left, Opaque) or isinstance(right, Opaque):
            return Opaque()
        lhs, rhs = numeric_value(left), numeric_value(right)
        if op in Operators.ARITHMETIC_OPERATORS and lhs is not None and rhs is not None:
            result = Operators.eval_binop(op, lhs, rhs)
            if result is not Operators.UNCOMPUTABLE:
                return Literal(result)
        if op == "+":
            pieces = [text_piece(left), text_piece(right)]
            return derive(pieces) or Literal("".join(pieces))
        pieces = [text_piece(left), f" {op} ", text_piece(right)]
        return derive(pieces) or Symbolic(text="".join(pieces))

    # ── async ────────────────────────────────────────────────────

    def _eval_await(self, node) -> EvaluatedValue:
        inner = self.evaluate(
            next((c for c in node.named_children if c.type != "comment"), None)
        )
        if isinstance(inner, PendingFetch):
            return inner
        if isinstance(inner, Symbolic) and inner.is_pending_response:
            return PendingFetch(
                task_id=self._env.fresh_fetch_id(),
                url=inner.url,
                kind=FetchKind.TEXT,
                placeholder=constants.RESPONSE_PENDING_TEMPLATE.format(url=inner.url),
            )
        return Symbolic(text=constants.AWAITED_TEMPLATE.format(value=inner.render()))

    def _eval_function_literal(self, node) -> EvaluatedValue:
        if any(child.type == "async" for child in node.children):
            return Symbolic(text=constants.ASYNC_FUNCTION)
        return Opaque()

    # ── calls ────────────────────────────────────────────────────

    def _eval_call(self, node) -> EvaluatedValue:
        func_node = node.child_by_field_name("function")
        args = self.evaluate_arguments(node.child_by_field_name("arguments"))

        if func_node.type == "identifier":
            return self._eval_named_call(self._node_text(func_node), args)

        if func_node.type == "member_expression":
            special = self._eval_member_call(func_node, args)
            if special is not None:
                return special
            callee = self._member_text(func_node)
        else:
            callee = self.evaluate(func_node).render()
        return self._call_text(callee, args)

    def _eval_named_call(self, name: str, args: list[EvaluatedValue]) -> EvaluatedValue:
        if name == constants.FETCH_FUNCTION:
            url = args[0].render() if args else constants.UNKNOWN_URL
            return Symbolic(
                text=constants.RESPONSE_PROMISE_TEMPLATE.format(url=url), url=url
            )
        if name in self._env.functions:
            computed = call_arithmetic_helper(name, args)
            if computed is not None:
                return computed
        elif name in Builtins.TABLE:
            coerced = Builtins.call(name, args)
            if coerced is not None:
                return coerced
        return self._call_text(name, args)

    def _eval_member_call(
        self, func_node, args: list[EvaluatedValue]
    ) -> EvaluatedValue | None:
        obj_node = func_node.child_by_field_name("object")
        prop_node = func_node.child_by_field_name("property")
        if prop_node is None:
            return None
        method = self._node_text(prop_node)

        if (
            obj_node.type == "identifier"
            and self._node_text(obj_node) == constants.PROMISE_NAME
        ):
            settled = args[0].render() if args else "undefined"
            if method == "resolve":
                return Symbolic(
                    text=constants.PROMISE_RESOLVED_TEMPLATE.format(value=settled)
                )
            if method == "reject":
                return Symbolic(
                    text=constants.PROMISE_REJECTED_TEMPLATE.format(value=settled)
                )
            return Symbolic(text=constants.PROMISE_UNKNOWN)

        if method in constants.PROMISE_CHAIN_METHODS:
            return Symbolic(text=constants.PROMISE_UNKNOWN)

        if method in constants.BODY_ACCESSORS:
            url = _pending_response_url(self.evaluate(obj_node))
            if url:
                return PendingFetch(
                    task_id=self._env.fresh_fetch_id(),
                    url=url,
                    kind=FetchKind(method),
                    placeholder=constants.BODY_PENDING_TEMPLATE.format(url=url),
                )
        return None

    def _eval_new(self, node) -> EvaluatedValue:
        ctor = node.child_by_field_name("constructor")
        if (
            ctor is not None
            and ctor.type == "identifier"
            and self._node_text(ctor) == constants.PROMISE_NAME
        ):
            return Symbolic(text=constants.PROMISE_UNKNOWN)
        return Opaque()


def _composite(pieces: list, fields) -> EvaluatedValue:
    derived = derive(pieces)
    if derived is None:
        return Composite(text="".join(pieces), fields=fields)
    return dataclasses.replace(derived, fields=fields)


def _field_of(
    known: Composite | Derived | dict | None, key: str
) -> EvaluatedValue | None:
    if isinstance(known, dict):
        return known.get(key)
    if isinstance(known, (Composite, Derived)):
        return known.lookup(key)
    return None


def _pending_response_url(receiver: EvaluatedValue) -> str:
    """URL carried by a pending response placeholder, or '' for anything else."""
    if isinstance(receiver, PendingFetch):
        return receiver.url
    if isinstance(receiver, Symbolic) and receiver.is_pending_response:
        return receiver.url
    return ""
