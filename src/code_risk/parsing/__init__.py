"""Source parsing and structural entity extraction."""

from .languages import Language, NodeKinds, DEFAULT_NODE_KINDS, detect_language, node_kinds_for
from .parser import SyntaxParser, walk, node_text
from .models import CodeEntity, EntityKind, ExtractionResult
from .extractors import EntityExtractor

__all__ = [
    "Language",
    "NodeKinds",
    "DEFAULT_NODE_KINDS",
    "detect_language",
    "node_kinds_for",
    "SyntaxParser",
    "walk",
    "node_text",
    "CodeEntity",
    "EntityKind",
    "ExtractionResult",
    "EntityExtractor",
]
