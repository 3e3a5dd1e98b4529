"""In-process store backing the CLI and the test suite."""

import threading
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..exceptions import RepositoryNotFoundError
from ..git.models import BusFactorMetric
from ..ingestion.models import Repository, SourceFile, utc_now
from ..parsing.models import CodeEntity
from ..security.models import SecurityFinding
from .base import RiskStore


class InMemoryStore(RiskStore):
    """Dictionary-backed ``RiskStore``.

    All access goes through one lock. Records are copied on the way in and
    out so callers never hold references into the store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._repositories: Dict[str, Repository] = {}
        self._files: Dict[Tuple[str, str], SourceFile] = {}
        self._entities: Dict[str, List[CodeEntity]] = defaultdict(list)
        self._findings: Dict[str, List[SecurityFinding]] = defaultdict(list)
        self._bus_factor: Dict[str, List[BusFactorMetric]] = defaultdict(list)

    def get_repository(self, repository_id: str) -> Optional[Repository]:
        with self._lock:
            repository = self._repositories.get(repository_id)
            return repository.model_copy(deep=True) if repository else None

    def find_repository(self, owner: str, name: str) -> Optional[Repository]:
        with self._lock:
            for repository in self._repositories.values():
                if repository.owner == owner and repository.name == name:
                    return repository.model_copy(deep=True)
            return None

    def list_repositories(self) -> List[Repository]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._repositories.values()]

    def save_repository(self, repository: Repository) -> Repository:
        with self._lock:
            existing = self.find_repository(repository.owner, repository.name)
            stored = repository.model_copy(deep=True)
            if existing is not None:
                stored.id = existing.id
                stored.created_at = existing.created_at
            stored.updated_at = utc_now()
            self._repositories[stored.id] = stored
            return stored.model_copy(deep=True)

    def update_repository(self, repository_id: str, **fields: Any) -> Repository:
        with self._lock:
            current = self._repositories.get(repository_id)
            if current is None:
                raise RepositoryNotFoundError(f"Repository not found: {repository_id}")
            updated = current.model_copy(update={**fields, 'updated_at': utc_now()})
            # model_copy skips validation; round-trip so bad values are rejected here
            updated = Repository.model_validate(updated.model_dump())
            self._repositories[repository_id] = updated
            return updated.model_copy(deep=True)

    def upsert_file(self, file: SourceFile) -> SourceFile:
        with self._lock:
            key = (file.repository_id, file.file_path)
            existing = self._files.get(key)
            stored = file.model_copy(deep=True)
            stored.id = existing.id if existing is not None else str(uuid.uuid4())
            self._files[key] = stored
            return stored.model_copy(deep=True)

    def list_files(self, repository_id: str) -> List[SourceFile]:
        with self._lock:
            return [
                f.model_copy(deep=True)
                for (repo_id, _), f in self._files.items()
                if repo_id == repository_id
            ]

    def clear_analysis(self, repository_id: str) -> None:
        with self._lock:
            self._entities.pop(repository_id, None)
            self._findings.pop(repository_id, None)

    def insert_entities(self, entities: Sequence[CodeEntity]) -> int:
        with self._lock:
            for entity in entities:
                self._entities[entity.repository_id].append(entity.model_copy(deep=True))
            return len(entities)

    def insert_findings(self, findings: Sequence[SecurityFinding]) -> int:
        with self._lock:
            for finding in findings:
                self._findings[finding.repository_id].append(finding.model_copy(deep=True))
            return len(findings)

    def list_entities(self, repository_id: str) -> List[CodeEntity]:
        with self._lock:
            return [e.model_copy(deep=True) for e in self._entities.get(repository_id, [])]

    def list_findings(self, repository_id: str) -> List[SecurityFinding]:
        with self._lock:
            return [f.model_copy(deep=True) for f in self._findings.get(repository_id, [])]

    def append_bus_factor(self, metric: BusFactorMetric) -> BusFactorMetric:
        with self._lock:
            stored = metric.model_copy(deep=True)
            stored.id = stored.id or str(uuid.uuid4())
            self._bus_factor[stored.repository_id].append(stored)
            return stored.model_copy(deep=True)

    def list_bus_factor(self, repository_id: str) -> List[BusFactorMetric]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._bus_factor.get(repository_id, [])]

    def purge_repository(self, repository_id: str) -> bool:
        with self._lock:
            existed = self._repositories.pop(repository_id, None) is not None
            for key in [k for k in self._files if k[0] == repository_id]:
                del self._files[key]
            self._entities.pop(repository_id, None)
            self._findings.pop(repository_id, None)
            self._bus_factor.pop(repository_id, None)
            return existed
