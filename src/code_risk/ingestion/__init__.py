"""Repository ingestion: file selection, GitHub metadata and the pipeline."""

from .models import (
    ALLOWED_TRANSITIONS, GitHubRepoInfo, IngestionResult, Repository, RepositoryRef,
    RepositoryStatus, SourceDocument, SourceFile, can_transition, ensure_transition
)
from .discovery import DEFAULT_INCLUDE_PATTERNS, EXCLUDED_DIRS, EXCLUDED_FILE_PATTERNS, discover_files
from .github import GitHubClient
from .pipeline import IngestionPipeline

__all__ = [
    "ALLOWED_TRANSITIONS",
    "GitHubRepoInfo",
    "IngestionResult",
    "Repository",
    "RepositoryRef",
    "RepositoryStatus",
    "SourceDocument",
    "SourceFile",
    "can_transition",
    "ensure_transition",
    "DEFAULT_INCLUDE_PATTERNS",
    "EXCLUDED_DIRS",
    "EXCLUDED_FILE_PATTERNS",
    "discover_files",
    "GitHubClient",
    "IngestionPipeline",
]
