"""Tests for ResultFormatter — display text, truncation and status."""

from __future__ import annotations

from inline_console.analysis_types import (
    AnalysisResult,
    AnnotationStatus,
    CallContext,
    LogCallSite,
    SourceLine,
)
from inline_console.formatter import ResultFormatter, collapse_and_truncate
from inline_console.values import (
    Derived,
    EvaluatedValue,
    FetchKind,
    FetchState,
    Literal,
    Opaque,
    PendingFetch,
    Reference,
)


def _site(
    args: list[EvaluatedValue],
    context: CallContext = CallContext.GLOBAL,
    line: int = 1,
) -> LogCallSite:
    return LogCallSite(
        line=SourceLine(number=line, text="console.log(...)"),
        method="log",
        raw_arguments=[None] * len(args),
        context=context,
        resolved_arguments=list(args),
    )


def _pending(state: FetchState = FetchState.PENDING, result: str = "") -> PendingFetch:
    return PendingFetch(
        task_id="fetch_0",
        url="https://e.com/data",
        kind=FetchKind.JSON,
        placeholder="fetching https://e.com/data…",
        state=state,
        result=result,
    )


class TestCollapseAndTruncate:
    def test_short_text_untouched(self):
        assert collapse_and_truncate("hello", 60) == "hello"

    def test_whitespace_collapsed(self):
        assert collapse_and_truncate("  a\n   b\tc ", 60) == "a b c"

    def test_exact_length_not_truncated(self):
        assert collapse_and_truncate("x" * 60, 60) == "x" * 60

    def test_truncation_appends_ellipsis(self):
        display = collapse_and_truncate("x" * 61, 60)
        assert display == "x" * 57 + "..."
        assert len(display) == 60


class TestFormat:
    def test_joins_arguments_with_space(self):
        annotation = ResultFormatter().format(
            _site([Literal("Mixed"), Literal("Hello World"), Literal(42)])
        )
        assert annotation.display_text == "Mixed Hello World 42"
        assert annotation.status == AnnotationStatus.RESOLVED

    def test_reference_renders_name(self):
        annotation = ResultFormatter().format(_site([Reference("undeclared")]))
        assert annotation.display_text == "undeclared"

    def test_no_arguments(self):
        annotation = ResultFormatter().format(_site([]))
        assert annotation.display_text == ""
        assert annotation.status == AnnotationStatus.RESOLVED

    def test_inside_function(self):
        annotation = ResultFormatter().format(
            _site([Literal("x")], context=CallContext.FUNCTION)
        )
        assert annotation.display_text == "inside function"
        assert annotation.status == AnnotationStatus.NOT_EXECUTED

    def test_inside_class_and_callback(self):
        formatter = ResultFormatter()
        assert (
            formatter.format(_site([], context=CallContext.CLASS)).display_text
            == "inside class method"
        )
        assert (
            formatter.format(_site([], context=CallContext.CALLBACK)).display_text
            == "inside callback"
        )

    def test_opaque_argument_not_executed(self):
        annotation = ResultFormatter().format(_site([Literal("a"), Opaque()]))
        assert annotation.display_text == "not executed"
        assert annotation.status == AnnotationStatus.NOT_EXECUTED

    def test_truncation_keeps_full_detail(self):
        long_text = "y" * 100
        annotation = ResultFormatter(max_length=20).format(_site([Literal(long_text)]))
        assert annotation.display_text == "y" * 17 + "..."
        assert annotation.detail_text == long_text

    def test_pending_fetch(self):
        annotation = ResultFormatter().format(_site([Literal("Data:"), _pending()]))
        assert annotation.status == AnnotationStatus.PENDING
        assert annotation.display_text == "Data: fetching https://e.com/data…"

    def test_resolved_fetch_collapses_pretty_json(self):
        body = '{\n  "id": 1\n}'
        annotation = ResultFormatter().format(
            _site([_pending(FetchState.RESOLVED, body)])
        )
        assert annotation.status == AnnotationStatus.RESOLVED
        assert annotation.display_text == '{ "id": 1 }'
        assert annotation.detail_text == body

    def test_failed_fetch(self):
        annotation = ResultFormatter().format(
            _site([_pending(FetchState.FAILED, "HTTP 404 Not Found")])
        )
        assert annotation.status == AnnotationStatus.FAILED
        assert annotation.display_text == "[fetch failed: HTTP 404 Not Found]"

    def test_fetch_inside_derived_text(self):
        pending = _site([Derived(segments=("Data: ", _pending()))])
        assert ResultFormatter().format(pending).status == AnnotationStatus.PENDING

        settled = _site([Derived(segments=("Data: ", _pending(FetchState.RESOLVED, "ok")))])
        annotation = ResultFormatter().format(settled)
        assert annotation.status == AnnotationStatus.RESOLVED
        assert annotation.display_text == "Data: ok"

        failed = _site([Derived(segments=("Data: ", _pending(FetchState.FAILED, "boom")))])
        assert ResultFormatter().format(failed).status == AnnotationStatus.FAILED


class TestFormatResult:
    def test_parse_failure_lines(self):
        result = AnalysisResult(
            parse_failed=True,
            failed_lines=[
                SourceLine(number=4, text="console.log(b"),
                SourceLine(number=2, text="console.log(a)"),
            ],
        )
        annotations = ResultFormatter().format_result(result)
        assert [a.line for a in annotations] == [2, 4]
        assert all(a.display_text == "execution failed" for a in annotations)
        assert all(a.status == AnnotationStatus.FAILED for a in annotations)

    def test_sorted_by_line(self):
        result = AnalysisResult(
            call_sites=[_site([Literal(2)], line=9), _site([Literal(1)], line=3)]
        )
        annotations = ResultFormatter().format_result(result)
        assert [a.display_text for a in annotations] == ["1", "2"]
