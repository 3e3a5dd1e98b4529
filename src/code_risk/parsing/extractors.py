"""Entity and import extraction from tree-sitter syntax trees."""

from typing import List, Mapping, Optional, Union

from tree_sitter import Node, Tree

from ..logging import get_logger
from .languages import DEFAULT_NODE_KINDS, Language, NodeKinds, node_kinds_for
from .models import (
    ANONYMOUS_CLASS, ANONYMOUS_FUNCTION, CodeEntity, EntityKind, ExtractionResult
)
from .parser import SyntaxParser, node_text, walk


logger = get_logger(__name__)

# Parent nodes that give an anonymous function expression its binding name.
_BINDING_PARENTS = {
    'variable_declarator': 'name',
    'assignment_expression': 'left',
    'pair': 'key',
    'public_field_definition': 'name',
    'field_definition': 'property',
}


class EntityExtractor:
    """Walks syntax trees and produces functions, classes and import targets.

    The extractor is generic: all grammar knowledge comes from the
    ``NodeKinds`` table registered for the file's language.
    """

    def __init__(self, parser: Optional[SyntaxParser] = None,
                 node_kinds: Optional[Mapping[Language, NodeKinds]] = None):
        """Initialize with an optional parser and node table override."""
        self.parser = parser or SyntaxParser()
        self.node_kinds = dict(node_kinds if node_kinds is not None else DEFAULT_NODE_KINDS)

    def extract(self, tree: Tree, source: str, language: Union[str, Language],
                file_path: str = "") -> ExtractionResult:
        """Extract entities and imports from an already parsed tree."""
        kinds = node_kinds_for(language, self.node_kinds)
        tag = Language(language).value if kinds else str(language)
        result = ExtractionResult(file_path=file_path, language=tag)
        if kinds is None:
            return result

        source_bytes = source.encode('utf-8')

        for node in walk(tree.root_node):
            # keyword tokens share type names with some grammar nodes
            if not node.is_named:
                continue
            node_type = node.type
            try:
                if node_type in kinds.function:
                    result.entities.append(self._build_entity(
                        node, source_bytes, kinds, EntityKind.FUNCTION, file_path, tag
                    ))
                elif node_type in kinds.class_:
                    result.entities.append(self._build_entity(
                        node, source_bytes, kinds, EntityKind.CLASS, file_path, tag
                    ))

                if node_type in kinds.import_statement:
                    result.imports.extend(self._static_imports(node, source_bytes, kinds))
                elif node_type in kinds.call:
                    target = self._dynamic_import(node, source_bytes, kinds)
                    if target:
                        result.imports.append(target)
            except Exception as e:
                # One odd node must not cost us the rest of the file.
                logger.warning(
                    "Failed to extract node",
                    file_path=file_path,
                    node_type=node_type,
                    line=node.start_point[0] + 1,
                    error=str(e)
                )
                result.parse_errors.append(f"{node_type}@{node.start_point[0] + 1}: {e}")

        return result

    def extract_source(self, source: str, language: Union[str, Language],
                       file_path: str = "") -> ExtractionResult:
        """Parse and extract in one step; never raises."""
        try:
            tree = self.parser.parse(source, language)
            if tree is None:
                return ExtractionResult(file_path=file_path, language=str(getattr(language, 'value', language)))
            return self.extract(tree, source, language, file_path)
        except Exception as e:
            logger.warning("Entity extraction failed", file_path=file_path, error=str(e))
            return ExtractionResult(
                file_path=file_path,
                language=str(getattr(language, 'value', language)),
                parse_errors=[str(e)]
            )

    def _build_entity(self, node: Node, source: bytes, kinds: NodeKinds, kind: EntityKind,
                      file_path: str, language: str) -> CodeEntity:
        if kind == EntityKind.FUNCTION:
            name = self._resolve_name(node, source, kinds.function_identifier, bind_from_parent=True)
            complexity = self.complexity(node, kinds)
        else:
            name = self._resolve_name(node, source, kinds.class_identifier, bind_from_parent=False)
            complexity = 1

        return CodeEntity(
            kind=kind,
            name=name or (ANONYMOUS_FUNCTION if kind == EntityKind.FUNCTION else ANONYMOUS_CLASS),
            signature=self._signature(node, source),
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            complexity=complexity,
            file_path=file_path,
            language=language,
        )

    def _resolve_name(self, node: Node, source: bytes, identifier_types,
                      bind_from_parent: bool) -> Optional[str]:
        """Find the nearest identifier naming ``node``."""
        name_node = node.child_by_field_name('name')
        if name_node is not None and name_node.type in identifier_types:
            return node_text(name_node, source)

        if name_node is None:
            for index, child in enumerate(node.children):
                if child.type not in identifier_types:
                    continue
                if node.field_name_for_child(index) in ('parameter', 'body'):
                    continue
                return node_text(child, source)

        if bind_from_parent and node.parent is not None:
            field = _BINDING_PARENTS.get(node.parent.type)
            if field:
                target = node.parent.child_by_field_name(field)
                if target is not None and target.type in identifier_types | {'member_expression'}:
                    return node_text(target, source)

        return None

    def _signature(self, node: Node, source: bytes) -> str:
        """First source line spanned by ``node``."""
        text = node_text(node, source)
        return text.split('\n', 1)[0].strip()

    @staticmethod
    def complexity(node: Node, kinds: NodeKinds) -> int:
        """Cyclomatic complexity estimate of the subtree rooted at ``node``."""
        complexity = 1
        branch_types = kinds.conditional | kinds.loop | kinds.switch | kinds.catch

        for n in walk(node):
            if n.type in branch_types:
                complexity += 1
            elif n.type in kinds.logical:
                operators = kinds.logical[n.type]
                if any(child.type in operators for child in n.children):
                    complexity += 1

        return complexity

    def _static_imports(self, node: Node, source: bytes, kinds: NodeKinds) -> List[str]:
        source_node = node.child_by_field_name('source')
        if source_node is None:
            source_node = node.child_by_field_name('module_name')
        candidates = [source_node] if source_node is not None else [
            child for child in node.children if child.type in kinds.import_source
        ]

        targets = []
        for candidate in candidates:
            if candidate.type == 'aliased_import':
                candidate = candidate.child_by_field_name('name') if candidate.child_by_field_name('name') is not None else candidate
            target = _strip_quotes(node_text(candidate, source))
            if target:
                targets.append(target)
        return targets

    def _dynamic_import(self, node: Node, source: bytes, kinds: NodeKinds) -> Optional[str]:
        function = node.child_by_field_name('function')
        if function is None:
            return None

        name = node_text(function, source).rsplit('.', 1)[-1]
        if name not in kinds.require_names:
            return None

        arguments = node.child_by_field_name('arguments')
        if arguments is None or not arguments.named_children:
            return None

        first = arguments.named_children[0]
        if first.type not in ('string', 'template_string'):
            return None
        if first.type == 'template_string' and any(c.type == 'template_substitution' for c in first.children):
            return None
        return _strip_quotes(node_text(first, source)) or None


def _strip_quotes(text: str) -> str:
    return text.strip().strip('\'"`')
