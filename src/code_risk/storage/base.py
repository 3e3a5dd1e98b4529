"""Persistence interface used by ingestion and analysis."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from ..exceptions import RepositoryNotFoundError
from ..git.models import BusFactorMetric
from ..ingestion.models import Repository, RepositoryStatus, SourceFile, ensure_transition
from ..parsing.models import CodeEntity
from ..security.models import SecurityFinding


class RiskStore(ABC):
    """Storage for repositories, files, entities, findings and bus factor history.

    Implementations must be safe to call from worker threads: the ingestion
    pipeline stores files from a thread while the event loop keeps running.
    """

    @abstractmethod
    def get_repository(self, repository_id: str) -> Optional[Repository]:
        """Fetch a repository by id."""

    @abstractmethod
    def find_repository(self, owner: str, name: str) -> Optional[Repository]:
        """Fetch a repository by its natural key."""

    @abstractmethod
    def list_repositories(self) -> List[Repository]:
        """All registered repositories."""

    @abstractmethod
    def save_repository(self, repository: Repository) -> Repository:
        """Insert or update a repository keyed by (owner, name)."""

    @abstractmethod
    def update_repository(self, repository_id: str, **fields: Any) -> Repository:
        """Update fields of an existing repository; raises ``RepositoryNotFoundError``."""

    @abstractmethod
    def upsert_file(self, file: SourceFile) -> SourceFile:
        """Replace the whole record for (repository_id, file_path) and return it with its id."""

    @abstractmethod
    def list_files(self, repository_id: str) -> List[SourceFile]:
        """Stored files of a repository."""

    @abstractmethod
    def clear_analysis(self, repository_id: str) -> None:
        """Delete all entities and findings of a repository."""

    @abstractmethod
    def insert_entities(self, entities: Sequence[CodeEntity]) -> int:
        """Bulk insert entities; returns the number stored."""

    @abstractmethod
    def insert_findings(self, findings: Sequence[SecurityFinding]) -> int:
        """Bulk insert findings; returns the number stored."""

    @abstractmethod
    def list_entities(self, repository_id: str) -> List[CodeEntity]:
        """Entities of a repository."""

    @abstractmethod
    def list_findings(self, repository_id: str) -> List[SecurityFinding]:
        """Findings of a repository."""

    @abstractmethod
    def append_bus_factor(self, metric: BusFactorMetric) -> BusFactorMetric:
        """Append a bus factor snapshot; snapshots are never updated."""

    @abstractmethod
    def list_bus_factor(self, repository_id: str) -> List[BusFactorMetric]:
        """Bus factor snapshots of a repository, oldest first."""

    @abstractmethod
    def purge_repository(self, repository_id: str) -> bool:
        """Delete a repository and everything stored for it; False if it did not exist."""

    def set_status(self, repository_id: str, status: RepositoryStatus, **fields: Any) -> Repository:
        """Move a repository to ``status`` after checking the transition is allowed."""
        repository = self.get_repository(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(f"Repository not found: {repository_id}")
        ensure_transition(repository.status, status)
        return self.update_repository(repository_id, status=status, **fields)
