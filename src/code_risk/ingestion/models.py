"""Data models for repositories, stored files and ingestion runs."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from ..core.constants import GITHUB_CLONE_URL_TEMPLATE
from ..exceptions import InvalidStatusTransitionError


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class RepositoryStatus(str, Enum):
    """Analysis status of a repository."""
    PENDING = "pending"
    QUEUED = "queued"
    CLONING = "cloning"
    PARSING = "parsing"
    COMPLETED = "completed"
    FAILED = "failed"


# In-progress states may fall back to QUEUED between retry attempts.
ALLOWED_TRANSITIONS: Dict[RepositoryStatus, FrozenSet[RepositoryStatus]] = {
    RepositoryStatus.PENDING: frozenset({RepositoryStatus.QUEUED}),
    RepositoryStatus.QUEUED: frozenset({RepositoryStatus.CLONING, RepositoryStatus.FAILED}),
    RepositoryStatus.CLONING: frozenset({
        RepositoryStatus.PARSING, RepositoryStatus.FAILED, RepositoryStatus.QUEUED
    }),
    RepositoryStatus.PARSING: frozenset({
        RepositoryStatus.COMPLETED, RepositoryStatus.FAILED, RepositoryStatus.QUEUED
    }),
    RepositoryStatus.COMPLETED: frozenset({RepositoryStatus.QUEUED}),
    RepositoryStatus.FAILED: frozenset({RepositoryStatus.QUEUED}),
}


def can_transition(current: RepositoryStatus, target: RepositoryStatus) -> bool:
    """Whether a repository may move from ``current`` to ``target``."""
    return target in ALLOWED_TRANSITIONS.get(RepositoryStatus(current), frozenset())


def ensure_transition(current: RepositoryStatus, target: RepositoryStatus) -> None:
    """Raise ``InvalidStatusTransitionError`` for a disallowed status change."""
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            f"Cannot move repository from {RepositoryStatus(current).value} to {RepositoryStatus(target).value}",
            {"from": RepositoryStatus(current).value, "to": RepositoryStatus(target).value}
        )


class RepositoryRef(BaseModel):
    """What a caller supplies to register a repository."""
    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)
    clone_url: Optional[str] = None
    branch: Optional[str] = None

    @property
    def full_name(self) -> str:
        """``owner/name``."""
        return f"{self.owner}/{self.name}"

    def resolved_clone_url(self) -> str:
        """Explicit clone URL, or the public GitHub URL for ``owner/name``."""
        return self.clone_url or GITHUB_CLONE_URL_TEMPLATE.format(owner=self.owner, name=self.name)


class GitHubRepoInfo(BaseModel):
    """Repository metadata reported by the GitHub API."""
    github_id: Optional[int] = None
    owner: str
    name: str
    full_name: str
    description: Optional[str] = None
    clone_url: str
    default_branch: Optional[str] = None
    language: Optional[str] = None
    size_kb: int = 0
    stars: int = 0
    forks: int = 0
    is_private: bool = False
    topics: List[str] = Field(default_factory=list)


class Repository(BaseModel):
    """A registered repository and the state of its latest analysis."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner: str
    name: str
    clone_url: str
    default_branch: Optional[str] = None
    language: Optional[str] = None
    description: Optional[str] = None
    size_kb: Optional[int] = None
    status: RepositoryStatus = RepositoryStatus.PENDING
    risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    last_error: Optional[str] = None
    last_analyzed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def full_name(self) -> str:
        """``owner/name``."""
        return f"{self.owner}/{self.name}"


class SourceFile(BaseModel):
    """A stored source file; ``content`` is capped at the storage limit."""
    id: Optional[str] = None
    repository_id: str
    file_path: str
    content: str = ""
    language: str
    line_count: int = 0
    size_bytes: int = 0
    last_modified: Optional[datetime] = None


class SourceDocument(BaseModel):
    """A stored file together with the full text read from disk.

    Analysis works on ``content``; the stored copy may be truncated.
    """
    file_id: Optional[str] = None
    file_path: str
    language: str
    content: str


class IngestionResult(BaseModel):
    """What one ingestion run hands to analysis."""
    repository_id: str
    documents: List[SourceDocument] = Field(default_factory=list)
    commit_log: Optional[str] = None
    discovered_files: int = 0
    skipped_files: int = 0
    size_bytes: int = 0
