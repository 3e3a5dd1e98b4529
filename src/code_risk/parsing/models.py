"""Data models for parsed source and extracted code entities."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


ANONYMOUS_FUNCTION = "anonymous"
ANONYMOUS_CLASS = "AnonymousClass"


class EntityKind(str, Enum):
    """Kinds of structural entities the extractor produces."""
    FUNCTION = "function"
    CLASS = "class"


class CodeEntity(BaseModel):
    """A function or class found in a source file.

    Line numbers are 1-indexed and inclusive. Entities are never mutated
    after extraction; the persistence layer only attaches identifiers.
    """
    kind: EntityKind
    name: str
    signature: str = ""
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    complexity: int = Field(default=1, ge=1)
    file_path: str = ""
    language: str = ""
    repository_id: Optional[str] = None
    file_id: Optional[str] = None

    @model_validator(mode='after')
    def validate_line_range(self):
        """An entity can never end before it starts."""
        if self.start_line > self.end_line:
            raise ValueError(
                f"start_line {self.start_line} is after end_line {self.end_line}"
            )
        return self


class ExtractionResult(BaseModel):
    """Everything pulled out of one file's syntax tree."""
    file_path: str
    language: str
    entities: List[CodeEntity] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list)
    parse_errors: List[str] = Field(default_factory=list)

    def get_functions(self) -> List[CodeEntity]:
        """Get all function entities."""
        return [e for e in self.entities if e.kind == EntityKind.FUNCTION]

    def get_classes(self) -> List[CodeEntity]:
        """Get all class entities."""
        return [e for e in self.entities if e.kind == EntityKind.CLASS]
