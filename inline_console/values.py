"""Evaluated values — the tagged union produced by the expression evaluator.

Each variant is an immutable dataclass. ``render()`` gives the text a
top-level ``console.log`` argument would print; ``render_nested()`` gives the
text used inside an array/object composite, where plain strings are quoted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from . import constants


class _Undefined:
    """Sentinel for the JavaScript ``undefined`` value."""

    def __repr__(self) -> str:
        return "undefined"


UNDEFINED = _Undefined()


class FetchKind(str, Enum):
    JSON = "json"
    TEXT = "text"


class FetchState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


def is_number(value: Any) -> bool:
    """True for JS numbers; ``bool`` is excluded even though it subclasses int."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_number(value: int | float) -> str:
    """Render a number the way JavaScript's ``String(n)`` would."""
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        sign = "-" if exponent.startswith("-") else "+"
        text = f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0') or '0'}"
    return text


@dataclass(frozen=True)
class Literal:
    value: Any

    def render(self) -> str:
        v = self.value
        if v is None:
            return "null"
        if v is UNDEFINED:
            return "undefined"
        if isinstance(v, bool):
            return "true" if v else "false"
        if is_number(v):
            return format_number(v)
        return str(v)

    def render_nested(self) -> str:
        if isinstance(self.value, str):
            return f'"{self.value}"'
        return self.render()

    @property
    def is_numeric(self) -> bool:
        return is_number(self.value)


@dataclass(frozen=True)
class Reference:
    name: str

    def render(self) -> str:
        return self.name

    def render_nested(self) -> str:
        return self.name


@dataclass(frozen=True)
class Composite:
    text: str
    # Flat key → value record for object literals; None for arrays.
    fields: tuple[tuple[str, "EvaluatedValue"], ...] | None = None

    def render(self) -> str:
        return self.text

    def render_nested(self) -> str:
        return self.text

    def lookup(self, key: str) -> "EvaluatedValue | None":
        if self.fields is None:
            return None
        return dict(self.fields).get(key)


@dataclass(frozen=True)
class FunctionTag:
    name: str

    def render(self) -> str:
        return constants.FUNC_TAG_TEMPLATE.format(name=self.name)

    def render_nested(self) -> str:
        return self.render()


@dataclass(frozen=True)
class ClassTag:
    name: str

    def render(self) -> str:
        return constants.CLASS_TAG_TEMPLATE.format(name=self.name)

    def render_nested(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Symbolic:
    """A value known only by its shape: promises, pending responses, awaits."""

    text: str
    url: str = ""

    def render(self) -> str:
        return self.text

    def render_nested(self) -> str:
        return self.text

    @property
    def is_pending_response(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class PendingFetch:
    task_id: str
    url: str
    kind: FetchKind
    placeholder: str
    state: FetchState = FetchState.PENDING
    result: str = ""

    def render(self) -> str:
        if self.state == FetchState.RESOLVED:
            return self.result
        if self.state == FetchState.FAILED:
            return constants.FETCH_FAILED_TEMPLATE.format(error=self.result)
        return self.placeholder

    def render_nested(self) -> str:
        return self.render()

    @property
    def is_pending(self) -> bool:
        return self.state == FetchState.PENDING


@dataclass(frozen=True)
class Derived:
    """Text built around one or more fetch bodies.

    ``segments`` interleaves plain text with the ``PendingFetch`` values it
    depends on, so the text can be re-rendered as each fetch settles.
    """

    segments: tuple[Union[str, PendingFetch], ...]
    fields: tuple[tuple[str, "EvaluatedValue"], ...] | None = None

    def render(self) -> str:
        return "".join(
            seg if isinstance(seg, str) else seg.render() for seg in self.segments
        )

    def render_nested(self) -> str:
        return self.render()

    def lookup(self, key: str) -> "EvaluatedValue | None":
        if self.fields is None:
            return None
        return dict(self.fields).get(key)

    def fetches(self) -> list[tuple[int, PendingFetch]]:
        return [
            (i, seg)
            for i, seg in enumerate(self.segments)
            if isinstance(seg, PendingFetch)
        ]

    def settle(self, part: int, value: PendingFetch) -> "Derived":
        """Copy with the fetch at segment *part* replaced by *value*."""
        if not isinstance(self.segments[part], PendingFetch):
            raise ValueError(f"Segment {part} is not a fetch")
        segments = list(self.segments)
        segments[part] = value
        return Derived(segments=tuple(segments), fields=self.fields)


@dataclass(frozen=True)
class Opaque:
    text: str = constants.COMPLEX_EXPRESSION

    def render(self) -> str:
        return self.text

    def render_nested(self) -> str:
        return self.text


EvaluatedValue = Union[
    Literal,
    Reference,
    Composite,
    FunctionTag,
    ClassTag,
    Symbolic,
    PendingFetch,
    Derived,
    Opaque,
]


def numeric_value(value: EvaluatedValue) -> int | float | None:
    """Return the number held by a numeric Literal, else None."""
    if isinstance(value, Literal) and value.is_numeric:
        return value.value
    return None


def derive(pieces) -> Derived | None:
    """Join text pieces and fetch-bearing values into a ``Derived``.

    Nested ``Derived`` pieces are flattened. Returns None when no piece
    depends on a fetch, in which case every piece is plain text.
    """
    segments: list = []
    for piece in pieces:
        items = piece.segments if isinstance(piece, Derived) else (piece,)
        for item in items:
            if isinstance(item, str):
                if not item:
                    continue
                if segments and isinstance(segments[-1], str):
                    segments[-1] += item
                    continue
            segments.append(item)
    if not any(isinstance(seg, PendingFetch) for seg in segments):
        return None
    return Derived(segments=tuple(segments))


def text_piece(value: EvaluatedValue, nested: bool = False):
    """A value as a ``derive`` piece: fetch-bearing values stay themselves."""
    if isinstance(value, (PendingFetch, Derived)):
        return value
    return value.render_nested() if nested else value.render()
