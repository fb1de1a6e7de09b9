"""Composable API functions for inline console prediction.

Each function corresponds to a CLI workflow but is callable
programmatically without argparse.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from . import constants
from .analysis_types import LineAnnotation
from .fetch import HttpTransport, ResponseCache
from .settings import AnalyzerSettings
from .session import AnalysisSession

logger = logging.getLogger(__name__)


def analyze_source(
    source: str,
    language: str = constants.DEFAULT_LANGUAGE,
    settings: Optional[AnalyzerSettings] = None,
) -> list[LineAnnotation]:
    """Statically predict console output without touching the network.

    Lines whose value depends on a fetch keep their pending placeholder.

    Args:
        source: JavaScript or TypeScript source text.
        language: "javascript" or "typescript".
        settings: Analyzer settings; defaults when omitted.

    Returns:
        One annotation per logging line, ordered by line number.
    """
    logger.info("Analyzing source (%s, offline)", language)
    session = AnalysisSession(settings=settings)
    session.analyze(source, language)
    return session.annotations()


async def predict_source(
    source: str,
    language: str = constants.DEFAULT_LANGUAGE,
    settings: Optional[AnalyzerSettings] = None,
    transport: Optional[HttpTransport] = None,
    cache: Optional[ResponseCache] = None,
) -> list[LineAnnotation]:
    """Predict console output and resolve every fetched body it depends on.

    Args:
        source: JavaScript or TypeScript source text.
        language: "javascript" or "typescript".
        settings: Analyzer settings; defaults when omitted.
        transport: HTTP transport; urllib-based when omitted.
        cache: Shared response cache; a fresh one when omitted.

    Returns:
        Final annotations after all fetches settled.
    """
    logger.info("Predicting source (%s)", language)
    session = AnalysisSession(settings=settings, cache=cache, transport=transport)
    session.analyze(source, language)
    return await session.resolve_all()


def dump_annotations(annotations: list[LineAnnotation]) -> str:
    """Serialize annotations as a JSON array."""
    payload: list[dict[str, Any]] = [a.model_dump(mode="json") for a in annotations]
    return json.dumps(payload, indent=2, ensure_ascii=False)
