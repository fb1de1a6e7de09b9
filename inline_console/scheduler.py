"""Debounced re-analysis driven by document edits."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from . import constants
from .analysis_types import LineAnnotation, LineCorrection
from .session import AnalysisSession

logger = logging.getLogger(__name__)

AnnotationsListener = Callable[[list[LineAnnotation]], None]
CorrectionListener = Callable[[LineCorrection], None]


class AnalysisScheduler:
    """Coalesces bursts of edits into a single analysis run.

    Every ``schedule()`` cancels the previously scheduled run, waits
    ``debounce_delay`` milliseconds, analyzes, publishes the annotations and
    then streams fetch corrections as they settle.
    """

    def __init__(
        self,
        session: AnalysisSession,
        on_annotations: Optional[AnnotationsListener] = None,
        on_correction: Optional[CorrectionListener] = None,
    ):
        self._session = session
        self._on_annotations = on_annotations or (lambda _: None)
        self._on_correction = on_correction or (lambda _: None)
        self._pending: asyncio.Task | None = None
        self.enabled = session.settings.enable_on_startup

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False
        self.cancel()
        self._session.cancel_pending()
        self._on_annotations([])

    def toggle(self) -> bool:
        if self.enabled:
            self.disable()
        else:
            self.enable()
        logger.info("Inline console %s", "enabled" if self.enabled else "disabled")
        return self.enabled

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def schedule(
        self, source: str, language: str = constants.DEFAULT_LANGUAGE
    ) -> asyncio.Task | None:
        if not self.enabled:
            return None
        self.cancel()
        self._pending = asyncio.create_task(self._run(source, language))
        return self._pending

    async def _run(self, source: str, language: str) -> None:
        await asyncio.sleep(self._session.settings.debounce_seconds)
        self._session.analyze(source, language)
        self._on_annotations(self._session.annotations())
        async for correction in self._session.resolve_fetches():
            self._on_correction(correction)

    async def wait(self) -> None:
        """Wait for the currently scheduled run, if any, to finish."""
        if self._pending is not None:
            await self._pending
