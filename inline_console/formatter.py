"""ResultFormatter — turns call sites into per-line display annotations."""

from __future__ import annotations

import re

from . import constants
from .analysis_types import (
    AnalysisResult,
    AnnotationStatus,
    CallContext,
    LineAnnotation,
    LogCallSite,
    SourceLine,
)
from .values import FetchState, Opaque

_WHITESPACE_RE = re.compile(r"\s+")

_CONTEXT_STATUS: dict[CallContext, str] = {
    CallContext.FUNCTION: constants.STATUS_INSIDE_FUNCTION,
    CallContext.CLASS: constants.STATUS_INSIDE_CLASS,
    CallContext.CALLBACK: constants.STATUS_INSIDE_CALLBACK,
}


def collapse_and_truncate(text: str, max_length: int) -> str:
    collapsed = _WHITESPACE_RE.sub(" ", text).strip()
    if len(collapsed) <= max_length:
        return collapsed
    keep = max(max_length - len(constants.ELLIPSIS), 0)
    return collapsed[:keep] + constants.ELLIPSIS


class ResultFormatter:
    def __init__(self, max_length: int = constants.DEFAULT_MAX_LENGTH):
        self.max_length = max_length

    def _annotation(
        self, line: int, text: str, status: AnnotationStatus
    ) -> LineAnnotation:
        return LineAnnotation(
            line=line,
            display_text=collapse_and_truncate(text, self.max_length),
            detail_text=text,
            status=status,
        )

    def format(self, site: LogCallSite) -> LineAnnotation:
        """Display annotation for one call site in its current state."""
        if site.context != CallContext.GLOBAL:
            return self._annotation(
                site.line_number,
                _CONTEXT_STATUS[site.context],
                AnnotationStatus.NOT_EXECUTED,
            )
        if any(isinstance(arg, Opaque) for arg in site.resolved_arguments):
            return self._annotation(
                site.line_number,
                constants.STATUS_NOT_EXECUTED,
                AnnotationStatus.NOT_EXECUTED,
            )

        fetches = [fetch for _, _, fetch in site.fetches()]
        if any(f.state == FetchState.FAILED for f in fetches):
            status = AnnotationStatus.FAILED
        elif any(f.is_pending for f in fetches):
            status = AnnotationStatus.PENDING
        else:
            status = AnnotationStatus.RESOLVED
        text = " ".join(arg.render() for arg in site.resolved_arguments)
        return self._annotation(site.line_number, text, status)

    def format_failed_line(self, line: SourceLine) -> LineAnnotation:
        return self._annotation(
            line.number, constants.STATUS_EXECUTION_FAILED, AnnotationStatus.FAILED
        )

    def format_result(self, result: AnalysisResult) -> list[LineAnnotation]:
        """All annotations for a pass, ordered by line."""
        if result.parse_failed:
            annotations = [self.format_failed_line(line) for line in result.failed_lines]
        else:
            annotations = [self.format(site) for site in result.call_sites]
        return sorted(annotations, key=lambda a: a.line)
