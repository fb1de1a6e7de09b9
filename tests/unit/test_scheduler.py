"""Tests for AnalysisScheduler debouncing and enable/disable toggling."""

from __future__ import annotations

import asyncio

import pytest

from inline_console.fetch import HttpResponse, HttpTransport
from inline_console.scheduler import AnalysisScheduler
from inline_console.session import AnalysisSession
from inline_console.settings import AnalyzerSettings


class NoNetworkTransport(HttpTransport):
    def get(self, url: str, max_bytes: int, timeout: float) -> HttpResponse:
        raise AssertionError(f"unexpected request to {url}")


def _scheduler(enabled: bool = True):
    settings = AnalyzerSettings.from_bag(
        {"debounceDelay": 20, "enableOnStartup": enabled}
    )
    session = AnalysisSession(settings=settings, transport=NoNetworkTransport())
    published: list[list] = []
    scheduler = AnalysisScheduler(session, on_annotations=published.append)
    return scheduler, session, published


class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_of_edits_runs_once(self):
        scheduler, session, published = _scheduler()

        scheduler.schedule("console.log(1);\n")
        scheduler.schedule("console.log(2);\n")
        scheduler.schedule("console.log(3);\n")
        await scheduler.wait()

        assert session.pass_id == 1
        assert len(published) == 1
        assert published[0][0].display_text == "3"

    @pytest.mark.asyncio
    async def test_separate_edits_each_run(self):
        scheduler, session, published = _scheduler()

        scheduler.schedule("console.log(1);\n")
        await scheduler.wait()
        scheduler.schedule("console.log(2);\n")
        await scheduler.wait()

        assert session.pass_id == 2
        assert [p[0].display_text for p in published] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_cancel_prevents_run(self):
        scheduler, session, published = _scheduler()

        scheduler.schedule("console.log(1);\n")
        scheduler.cancel()
        await asyncio.sleep(0.05)

        assert session.pass_id == 0
        assert published == []


class TestToggle:
    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        scheduler, session, _ = _scheduler(enabled=False)
        assert scheduler.schedule("console.log(1);\n") is None
        assert session.pass_id == 0

    @pytest.mark.asyncio
    async def test_toggle_clears_annotations(self):
        scheduler, _, published = _scheduler()
        assert scheduler.toggle() is False
        assert published == [[]]
        assert scheduler.toggle() is True
