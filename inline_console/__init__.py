"""Inline console — static prediction of console output for JavaScript sources."""

from .api import (  # noqa: F401
    analyze_source,
    predict_source,
    dump_annotations,
)
from .session import AnalysisSession  # noqa: F401
from .settings import AnalyzerSettings  # noqa: F401
