"""Language detection and per-language syntax node tables."""

from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, FrozenSet, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict


class Language(str, Enum):
    """Language tags understood by the parser and the file discovery step."""
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    PYTHON = "python"
    GO = "go"
    RUST = "rust"
    JAVA = "java"
    C = "c"
    CPP = "cpp"
    UNKNOWN = "unknown"


EXTENSION_MAP: Mapping[str, Language] = {
    '.js': Language.JAVASCRIPT,
    '.jsx': Language.JAVASCRIPT,
    '.ts': Language.TYPESCRIPT,
    '.tsx': Language.TSX,
    '.py': Language.PYTHON,
    '.go': Language.GO,
    '.rs': Language.RUST,
    '.java': Language.JAVA,
    '.c': Language.C,
    '.h': Language.C,
    '.cpp': Language.CPP,
}


def detect_language(path: Union[str, PurePosixPath]) -> Language:
    """Map a file path to its language tag; unknown extensions are not an error."""
    suffix = PurePosixPath(str(path)).suffix.lower()
    return EXTENSION_MAP.get(suffix, Language.UNKNOWN)


class NodeKinds(BaseModel):
    """Capability table for one tree-sitter grammar.

    Extraction and the complexity walk only ever look at node ``type``
    strings, so every language-specific decision lives in this table.
    """
    model_config = ConfigDict(frozen=True)

    function: FrozenSet[str]
    class_: FrozenSet[str]
    function_identifier: FrozenSet[str]
    class_identifier: FrozenSet[str]
    conditional: FrozenSet[str]
    loop: FrozenSet[str]
    switch: FrozenSet[str]
    catch: FrozenSet[str]
    # node type -> operator tokens counted as short-circuit branches
    logical: Mapping[str, FrozenSet[str]]
    import_statement: FrozenSet[str]
    import_source: FrozenSet[str]
    call: FrozenSet[str] = frozenset()
    require_names: FrozenSet[str] = frozenset()


_JAVASCRIPT_KINDS = NodeKinds(
    function=frozenset({
        'function_declaration', 'function', 'function_expression',
        'generator_function_declaration', 'generator_function',
        'arrow_function', 'method_definition',
    }),
    class_=frozenset({'class_declaration', 'class', 'abstract_class_declaration'}),
    function_identifier=frozenset({'identifier', 'property_identifier', 'private_property_identifier'}),
    class_identifier=frozenset({'type_identifier', 'identifier'}),
    conditional=frozenset({'if_statement', 'ternary_expression', 'conditional_expression'}),
    loop=frozenset({'for_statement', 'for_in_statement', 'while_statement', 'do_statement'}),
    switch=frozenset({'switch_statement'}),
    catch=frozenset({'catch_clause'}),
    logical={'binary_expression': frozenset({'||', '&&'})},
    import_statement=frozenset({'import_statement', 'import_declaration'}),
    import_source=frozenset({'string', 'string_fragment'}),
    call=frozenset({'call_expression'}),
    require_names=frozenset({'require', 'import'}),
)

_PYTHON_KINDS = NodeKinds(
    function=frozenset({'function_definition'}),
    class_=frozenset({'class_definition'}),
    function_identifier=frozenset({'identifier'}),
    class_identifier=frozenset({'identifier'}),
    conditional=frozenset({'if_statement', 'elif_clause', 'conditional_expression'}),
    loop=frozenset({'for_statement', 'while_statement'}),
    switch=frozenset({'match_statement'}),
    catch=frozenset({'except_clause'}),
    logical={'boolean_operator': frozenset({'and', 'or'})},
    import_statement=frozenset({'import_statement', 'import_from_statement'}),
    import_source=frozenset({'dotted_name', 'relative_import', 'aliased_import'}),
    call=frozenset({'call'}),
    require_names=frozenset({'__import__', 'import_module'}),
)

DEFAULT_NODE_KINDS: Dict[Language, NodeKinds] = {
    Language.JAVASCRIPT: _JAVASCRIPT_KINDS,
    Language.TYPESCRIPT: _JAVASCRIPT_KINDS,
    Language.TSX: _JAVASCRIPT_KINDS,
    Language.PYTHON: _PYTHON_KINDS,
}


def node_kinds_for(language: Union[str, Language],
                   table: Optional[Mapping[Language, NodeKinds]] = None) -> Optional[NodeKinds]:
    """Look up the node table for a language, or None when it is not parseable."""
    try:
        tag = Language(language)
    except ValueError:
        return None
    return (table if table is not None else DEFAULT_NODE_KINDS).get(tag)
