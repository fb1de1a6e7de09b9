"""Parsing of JavaScript and TypeScript source into tree-sitter trees.

Grammar loading sits behind ``ParserFactory`` so sessions can be given a
different grammar source. Factories refuse any language outside
``SUPPORTED_LANGUAGES`` and keep one parser per language for reuse across
analysis passes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from . import constants

logger = logging.getLogger(__name__)


class ParserFactory(ABC):
    """Hands out a cached parser for each supported script language."""

    def __init__(self):
        self._parsers: dict[str, object] = {}

    def get_parser(self, language: str):
        if language not in constants.SUPPORTED_LANGUAGES:
            raise ValueError(
                f"Unsupported language: {language}. "
                f"Supported: {list(constants.SUPPORTED_LANGUAGES)}"
            )
        parser = self._parsers.get(language)
        if parser is None:
            parser = self._load(language)
            self._parsers[language] = parser
            logger.debug("Loaded %s grammar", language)
        return parser

    @abstractmethod
    def _load(self, language: str):
        """Build a fresh parser for an already-validated *language*."""
        ...


class TreeSitterParserFactory(ParserFactory):
    """Grammars from tree-sitter-language-pack."""

    def _load(self, language: str):
        import tree_sitter_language_pack as tslp

        return tslp.get_parser(language)


class SourceParser:
    def __init__(self, parser_factory: ParserFactory):
        self._factory = parser_factory

    def parse(self, source: str, language: str = constants.DEFAULT_LANGUAGE):
        """Parse *source*; a tree with syntax errors is returned, not raised."""
        tree = self._factory.get_parser(language).parse(source.encode("utf-8"))
        if tree.root_node.has_error:
            logger.debug("%s tree contains ERROR or MISSING nodes", language)
        return tree
