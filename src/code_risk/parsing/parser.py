"""Syntax parsing using tree-sitter."""

import threading
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Union

from tree_sitter import Language as TSLanguage, Node, Parser, Tree

from ..logging import get_logger
from .languages import Language


logger = get_logger(__name__)


def _load_javascript():
    import tree_sitter_javascript
    return tree_sitter_javascript.language()


def _load_typescript():
    import tree_sitter_typescript
    return tree_sitter_typescript.language_typescript()


def _load_tsx():
    import tree_sitter_typescript
    return tree_sitter_typescript.language_tsx()


def _load_python():
    import tree_sitter_python
    return tree_sitter_python.language()


DEFAULT_GRAMMARS: Mapping[Language, Callable[[], object]] = {
    Language.JAVASCRIPT: _load_javascript,
    Language.TYPESCRIPT: _load_typescript,
    Language.TSX: _load_tsx,
    Language.PYTHON: _load_python,
}


class SyntaxParser:
    """Parses source text into tree-sitter trees.

    Grammars are loaded lazily and once per process. ``Parser`` objects are
    not safe to share between threads, so one is cached per language for
    each thread that asks for it.
    """

    def __init__(self, grammars: Optional[Mapping[Language, Callable[[], object]]] = None):
        """Initialize with a language -> grammar loader table."""
        self._grammars = dict(grammars if grammars is not None else DEFAULT_GRAMMARS)
        self._languages: Dict[Language, TSLanguage] = {}
        self._unavailable: set = set()
        self._lock = threading.Lock()
        self._local = threading.local()

    def supported_languages(self) -> List[Language]:
        """Languages this parser has a grammar loader for."""
        return list(self._grammars)

    def supports(self, language: Union[str, Language]) -> bool:
        """Whether ``language`` has a grammar configured."""
        try:
            return Language(language) in self._grammars
        except ValueError:
            return False

    def _get_language(self, language: Language) -> Optional[TSLanguage]:
        """Load the grammar for ``language`` or None if it cannot be loaded."""
        with self._lock:
            if language in self._languages:
                return self._languages[language]
            if language in self._unavailable:
                return None
            try:
                ts_language = TSLanguage(self._grammars[language]())
            except Exception as e:
                logger.warning("Tree-sitter grammar unavailable", language=language.value, error=str(e))
                self._unavailable.add(language)
                return None
            self._languages[language] = ts_language
            return ts_language

    def _get_parser(self, language: Language) -> Optional[Parser]:
        """Get or create this thread's parser for ``language``."""
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}

        if language not in parsers:
            ts_language = self._get_language(language)
            if ts_language is None:
                return None
            parser = Parser()
            parser.language = ts_language
            parsers[language] = parser

        return parsers[language]

    def parse(self, source: str, language: Union[str, Language]) -> Optional[Tree]:
        """Parse ``source``; returns None for unsupported languages or parse failures."""
        try:
            tag = Language(language)
        except ValueError:
            return None
        if tag not in self._grammars:
            return None

        parser = self._get_parser(tag)
        if parser is None:
            return None

        try:
            return parser.parse(source.encode('utf-8'))
        except Exception as e:
            logger.warning("Parse failed", language=tag.value, error=str(e))
            return None


def walk(node: Node) -> Iterator[Node]:
    """Depth-first, pre-order walk over ``node`` and all of its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def node_text(node: Node, source: bytes) -> str:
    """Source text covered by ``node``."""
    return source[node.start_byte:node.end_byte].decode('utf-8', errors='replace')
