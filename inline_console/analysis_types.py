"""Analysis pipeline data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .values import Derived, EvaluatedValue, PendingFetch


class CallContext(str, Enum):
    """Lexical position of a logging call."""

    GLOBAL = "global"
    FUNCTION = "function"
    CLASS = "class"
    CALLBACK = "callback"


class AnnotationStatus(str, Enum):
    RESOLVED = "resolved"
    PENDING = "pending"
    FAILED = "failed"
    NOT_EXECUTED = "not-executed"


@dataclass(frozen=True)
class SourceLine:
    number: int  # 1-based
    text: str


@dataclass
class LogCallSite:
    """One discovered ``console.<method>(...)`` call."""

    line: SourceLine
    method: str
    raw_arguments: list[Any]  # tree-sitter nodes
    context: CallContext
    resolved_arguments: list[EvaluatedValue] = field(default_factory=list)
    pending_fetches: list[str] = field(default_factory=list)

    @property
    def line_number(self) -> int:
        return self.line.number

    def supersede(
        self, index: int, value: PendingFetch, part: int | None = None
    ) -> None:
        """Replace the PendingFetch at *index* with its settled successor.

        *part* addresses a fetch nested inside a ``Derived`` argument.
        """
        current = self.resolved_arguments[index]
        if part is not None and isinstance(current, Derived):
            self.resolved_arguments[index] = current.settle(part, value)
            return
        if part is not None or not isinstance(current, PendingFetch):
            raise ValueError(
                f"Argument {index} on line {self.line_number} is not a pending fetch"
            )
        self.resolved_arguments[index] = value

    def fetches(self) -> list[tuple[int, int | None, PendingFetch]]:
        """Every fetch the arguments depend on, as (index, part, fetch)."""
        found: list[tuple[int, int | None, PendingFetch]] = []
        for i, arg in enumerate(self.resolved_arguments):
            if isinstance(arg, PendingFetch):
                found.append((i, None, arg))
            elif isinstance(arg, Derived):
                found.extend((i, part, fetch) for part, fetch in arg.fetches())
        return found

    def pending_slots(self) -> list[tuple[int, int | None, PendingFetch]]:
        return [slot for slot in self.fetches() if slot[2].is_pending]


@dataclass
class AnalysisStats:
    """Timing and size statistics for one analysis pass."""

    source_bytes: int = 0
    source_lines: int = 0
    language: str = ""

    parse_time: float = 0.0
    walk_time: float = 0.0
    resolve_time: float = 0.0

    call_sites: int = 0
    functions_declared: int = 0
    classes_declared: int = 0
    variables_bound: int = 0
    pending_fetches: int = 0
    network_requests: int = 0
    cache_hits: int = 0

    def report(self) -> str:
        lines = [
            "═══ Analysis Statistics ═══",
            f"  Source: {self.source_lines} lines, {self.source_bytes} bytes ({self.language})",
            "",
            f"  {'Stage':<20} {'Time':>10}  {'Output':>30}",
            f"  {'─' * 20} {'─' * 10}  {'─' * 30}",
        ]
        stages = [
            ("Parse", self.parse_time, ""),
            ("Walk + evaluate", self.walk_time, f"{self.call_sites} logging calls"),
            (
                "Resolve fetches",
                self.resolve_time,
                f"{self.network_requests} requests, {self.cache_hits} cache hits",
            ),
        ]
        for name, t, output in stages:
            time_str = f"{t * 1000:>8.1f}ms"
            lines.append(f"  {name:<20} {time_str:>10}  {output:>30}")
        lines.append("")
        lines.append(
            f"  Environment: {self.variables_bound} variables,"
            f" {self.functions_declared} functions,"
            f" {self.classes_declared} classes,"
            f" {self.pending_fetches} pending fetches"
        )
        return "\n".join(lines)


@dataclass
class AnalysisResult:
    """Outcome of one analysis pass over a document."""

    call_sites: list[LogCallSite] = field(default_factory=list)
    simple_enough_for_direct_execution: bool = True
    parse_failed: bool = False
    source_lines: list[SourceLine] = field(default_factory=list)
    # Lines matched by the text fallback when the tree could not be parsed.
    failed_lines: list[SourceLine] = field(default_factory=list)
    pass_id: int = 0
    stats: AnalysisStats = field(default_factory=AnalysisStats)

    def site_at(self, line_number: int) -> LogCallSite | None:
        return next(
            (site for site in self.call_sites if site.line_number == line_number),
            None,
        )


class LineAnnotation(BaseModel):
    """Per-line output contract handed to the editor integration."""

    line: int
    display_text: str
    detail_text: str
    status: AnnotationStatus


class LineCorrection(BaseModel):
    """Standalone update for one line after an async resolution settles."""

    pass_id: int
    line: int
    argument_index: int
    annotation: LineAnnotation
