"""AnalysisSession — one document's analysis state across passes.

A session owns the Environment, the call sites and the pass id of the
current analysis. Each ``analyze()`` call starts a fresh pass; fetch results
belonging to an older pass are dropped when they arrive.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import time
from typing import AsyncIterator

from . import constants
from .analysis_types import (
    AnalysisResult,
    AnalysisStats,
    CallContext,
    LineAnnotation,
    LineCorrection,
    LogCallSite,
    SourceLine,
)
from .environment import Environment
from .fetch import (
    FetchResolver,
    FetchTask,
    HttpTransport,
    ResponseCache,
    UrllibTransport,
)
from .formatter import ResultFormatter
from .parser import ParserFactory, SourceParser, TreeSitterParserFactory
from .settings import AnalyzerSettings
from .values import Opaque, PendingFetch
from .walker import TreeWalker

logger = logging.getLogger(__name__)

_LOG_CALL_RE = re.compile(constants.LOG_CALL_PATTERN)

# (site, argument index, part inside a Derived argument or None, fetch)
PendingSlot = tuple[LogCallSite, int, int | None, PendingFetch]


def scan_logging_lines(source: str) -> list[SourceLine]:
    """Text-only fallback: every line that looks like it calls a console method."""
    return [
        SourceLine(number=i, text=text)
        for i, text in enumerate(source.split("\n"), start=1)
        if _LOG_CALL_RE.search(text)
    ]


class AnalysisSession:
    def __init__(
        self,
        settings: AnalyzerSettings | None = None,
        cache: ResponseCache | None = None,
        transport: HttpTransport | None = None,
        parser_factory: ParserFactory | None = None,
    ):
        self.settings = settings if settings is not None else AnalyzerSettings()
        self.cache = (
            cache
            if cache is not None
            else ResponseCache(self.settings.cache_capacity, self.settings.cache_ttl)
        )
        self._parser = SourceParser(parser_factory or TreeSitterParserFactory())
        self._formatter = ResultFormatter(self.settings.max_length)
        self._resolver = FetchResolver(
            transport if transport is not None else UrllibTransport(),
            self.cache,
            timeout=self.settings.timeout_seconds,
            max_bytes=self.settings.max_response_bytes,
        )
        self.pass_id = 0
        self.environment = Environment()
        self.result = AnalysisResult()
        self.fetch_tasks: dict[str, FetchTask] = {}
        self._in_flight: set[asyncio.Task] = set()

    @property
    def stats(self) -> AnalysisStats:
        return self.result.stats

    # ── analysis ─────────────────────────────────────────────────

    def analyze(
        self, source: str, language: str = constants.DEFAULT_LANGUAGE
    ) -> AnalysisResult:
        """Run one synchronous analysis pass, superseding any previous one."""
        self.cancel_pending()
        self.pass_id += 1
        source_bytes = source.encode("utf-8")
        stats = AnalysisStats(
            source_bytes=len(source_bytes),
            source_lines=source.count("\n") + 1,
            language=language,
        )

        t0 = time.perf_counter()
        tree = self._parser.parse(source, language)
        stats.parse_time = time.perf_counter() - t0

        self.environment = Environment()
        self.fetch_tasks = {}

        if tree.root_node.has_error:
            failed_lines = scan_logging_lines(source)
            logger.warning(
                "Pass %d: %s source has syntax errors; %d logging lines marked failed",
                self.pass_id,
                language,
                len(failed_lines),
            )
            self.result = AnalysisResult(
                parse_failed=True,
                failed_lines=failed_lines,
                pass_id=self.pass_id,
                stats=stats,
            )
            return self.result

        t1 = time.perf_counter()
        result = TreeWalker(self.environment).walk(tree, source_bytes)
        stats.walk_time = time.perf_counter() - t1
        result.pass_id = self.pass_id
        result.stats = stats
        self.result = result

        for *_, pending in self._resolvable_slots():
            self.fetch_tasks[pending.task_id] = FetchTask(
                task_id=pending.task_id, url=pending.url, kind=pending.kind
            )

        stats.call_sites = len(result.call_sites)
        stats.variables_bound = len(self.environment.variables)
        stats.functions_declared = len(self.environment.functions)
        stats.classes_declared = len(self.environment.classes)
        stats.pending_fetches = len(self.fetch_tasks)
        logger.info(
            "Pass %d: %d logging calls, %d pending fetches",
            self.pass_id,
            stats.call_sites,
            stats.pending_fetches,
        )
        return result

    def annotations(self) -> list[LineAnnotation]:
        return self._formatter.format_result(self.result)

    def _resolvable_slots(self) -> list[PendingSlot]:
        """Pending slots on lines that would actually print something."""
        slots: list[PendingSlot] = []
        for site in self.result.call_sites:
            if site.context != CallContext.GLOBAL:
                continue
            if any(isinstance(arg, Opaque) for arg in site.resolved_arguments):
                continue
            slots.extend((site, *slot) for slot in site.pending_slots())
        return slots

    # ── fetch resolution ─────────────────────────────────────────

    def cancel_pending(self) -> None:
        if self._in_flight:
            logger.debug("Cancelling %d in-flight fetches", len(self._in_flight))
        for task in self._in_flight:
            task.cancel()
        self._in_flight.clear()

    def _settle(self, slot: PendingSlot, outcome) -> LineCorrection:
        site, index, part, pending = slot
        state, text = outcome.render(pending.kind)
        site.supersede(
            index, dataclasses.replace(pending, state=state, result=text), part
        )
        task = self.fetch_tasks.get(pending.task_id)
        if task is not None:
            task.state = state
            task.result = text
        return LineCorrection(
            pass_id=self.result.pass_id,
            line=site.line_number,
            argument_index=index,
            annotation=self._formatter.format(site),
        )

    async def resolve_fetches(self) -> AsyncIterator[LineCorrection]:
        """Fetch every distinct URL of the current pass once; yield per-slot corrections."""
        if not self.settings.fetch_enabled:
            return
        pass_id = self.pass_id
        by_url: dict[str, list[PendingSlot]] = {}
        for slot in self._resolvable_slots():
            by_url.setdefault(slot[3].url, []).append(slot)
        if not by_url:
            return

        requests_before = self._resolver.requests
        hits_before = self._resolver.cache_hits
        t0 = time.perf_counter()
        tasks = [asyncio.create_task(self._resolver.fetch(url)) for url in by_url]
        self._in_flight.update(tasks)
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    outcome = await next_done
                except asyncio.CancelledError:
                    if pass_id != self.pass_id:
                        logger.info("Pass %d superseded; fetches cancelled", pass_id)
                        return
                    raise
                if pass_id != self.pass_id:
                    logger.info("Dropping fetch result for superseded pass %d", pass_id)
                    return
                for slot in by_url[outcome.url]:
                    yield self._settle(slot, outcome)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            self._in_flight.difference_update(tasks)
            if pass_id == self.pass_id:
                stats = self.result.stats
                stats.resolve_time += time.perf_counter() - t0
                stats.network_requests += self._resolver.requests - requests_before
                stats.cache_hits += self._resolver.cache_hits - hits_before

    async def resolve_all(self) -> list[LineAnnotation]:
        """Drive every fetch of the current pass to completion."""
        async for correction in self.resolve_fetches():
            logger.debug(
                "Line %d settled: %s",
                correction.line,
                correction.annotation.status.value,
            )
        return self.annotations()
