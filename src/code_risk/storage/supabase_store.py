"""Supabase-backed persistence."""

from typing import Any, Dict, List, Optional, Sequence

from supabase import Client, create_client

from ..config import config
from ..exceptions import ConfigurationError, RepositoryNotFoundError, SupabaseError
from ..git.models import BusFactorMetric
from ..ingestion.models import Repository, SourceFile, utc_now
from ..logging import get_logger
from ..parsing.models import CodeEntity
from ..security.models import SecurityFinding
from .base import RiskStore


logger = get_logger(__name__)

REPOSITORIES = "repositories"
CODE_FILES = "code_files"
CODE_ENTITIES = "code_entities"
SECURITY_FINDINGS = "security_findings"
BUS_FACTOR_METRICS = "bus_factor_metrics"

_INSERT_BATCH_SIZE = 500


def _repository_to_row(repository: Repository) -> Dict[str, Any]:
    row = repository.model_dump(mode='json', exclude={'status'})
    row['analysis_status'] = repository.status.value
    row['full_name'] = repository.full_name
    return row


def _repository_from_row(row: Dict[str, Any]) -> Repository:
    data = dict(row)
    data['status'] = data.pop('analysis_status', None) or 'pending'
    return Repository.model_validate({k: v for k, v in data.items() if k in Repository.model_fields})


def _file_to_row(file: SourceFile) -> Dict[str, Any]:
    row = file.model_dump(mode='json', exclude={'id', 'repository_id'})
    row['repo_id'] = file.repository_id
    return row


def _file_from_row(row: Dict[str, Any]) -> SourceFile:
    return SourceFile(
        id=row.get('id'),
        repository_id=row['repo_id'],
        file_path=row['file_path'],
        content=row.get('content') or "",
        language=row.get('language') or "unknown",
        line_count=row.get('line_count') or 0,
        size_bytes=row.get('size_bytes') or 0,
        last_modified=row.get('last_modified'),
    )


def _entity_to_row(entity: CodeEntity) -> Dict[str, Any]:
    return {
        'repo_id': entity.repository_id,
        'file_id': entity.file_id,
        'type': entity.kind.value,
        'name': entity.name,
        'signature': entity.signature,
        'start_line': entity.start_line,
        'end_line': entity.end_line,
        'complexity_score': entity.complexity,
        'file_path': entity.file_path,
        'language': entity.language,
    }


def _entity_from_row(row: Dict[str, Any]) -> CodeEntity:
    return CodeEntity(
        kind=row['type'],
        name=row.get('name') or "",
        signature=row.get('signature') or "",
        start_line=row['start_line'],
        end_line=row['end_line'],
        complexity=row.get('complexity_score') or 1,
        file_path=row.get('file_path') or "",
        language=row.get('language') or "",
        repository_id=row.get('repo_id'),
        file_id=row.get('file_id'),
    )


def _finding_to_row(finding: SecurityFinding) -> Dict[str, Any]:
    row = finding.model_dump(mode='json', exclude={'repository_id'})
    row['repo_id'] = finding.repository_id
    return row


def _finding_from_row(row: Dict[str, Any]) -> SecurityFinding:
    data = {k: v for k, v in row.items() if k in SecurityFinding.model_fields}
    data['repository_id'] = row.get('repo_id')
    return SecurityFinding.model_validate(data)


class SupabaseStore(RiskStore):
    """``RiskStore`` on top of the Supabase tables used by the web service."""

    def __init__(self, client: Optional[Client] = None):
        """Use ``client`` or build one from the configured credentials on first use."""
        self._client = client

    @property
    def client(self) -> Client:
        """Get the Supabase client, connecting if necessary."""
        if self._client is None:
            if not config.database.supabase_configured:
                raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
            try:
                self._client = create_client(config.database.supabase_url, config.database.supabase_service_key)
            except Exception as e:
                logger.error("Failed to connect to Supabase", error=str(e))
                raise SupabaseError.from_exception("Failed to connect to Supabase", e)
            logger.info("Connected to Supabase", url=config.database.supabase_url)
        return self._client

    def _execute(self, operation: str, query) -> List[Dict[str, Any]]:
        try:
            return query.execute().data or []
        except Exception as e:
            logger.error("Supabase operation failed", operation=operation, error=str(e))
            raise SupabaseError.from_exception(f"Supabase {operation} failed", e)

    def get_repository(self, repository_id: str) -> Optional[Repository]:
        rows = self._execute(
            "get_repository", self.client.table(REPOSITORIES).select("*").eq("id", repository_id)
        )
        return _repository_from_row(rows[0]) if rows else None

    def find_repository(self, owner: str, name: str) -> Optional[Repository]:
        rows = self._execute(
            "find_repository",
            self.client.table(REPOSITORIES).select("*").eq("owner", owner).eq("name", name)
        )
        return _repository_from_row(rows[0]) if rows else None

    def list_repositories(self) -> List[Repository]:
        rows = self._execute("list_repositories", self.client.table(REPOSITORIES).select("*"))
        return [_repository_from_row(row) for row in rows]

    def save_repository(self, repository: Repository) -> Repository:
        existing = self.find_repository(repository.owner, repository.name)
        row = _repository_to_row(repository)
        row['updated_at'] = utc_now().isoformat()

        if existing is not None:
            row.pop('id', None)
            row.pop('created_at', None)
            rows = self._execute(
                "save_repository", self.client.table(REPOSITORIES).update(row).eq("id", existing.id)
            )
        else:
            rows = self._execute("save_repository", self.client.table(REPOSITORIES).insert(row))

        if not rows:
            raise SupabaseError("Repository write returned no rows", {"full_name": repository.full_name})
        return _repository_from_row(rows[0])

    def update_repository(self, repository_id: str, **fields: Any) -> Repository:
        current = self.get_repository(repository_id)
        if current is None:
            raise RepositoryNotFoundError(f"Repository not found: {repository_id}")

        updated = Repository.model_validate({**current.model_dump(), **fields})
        row = _repository_to_row(updated)
        row = {k: v for k, v in row.items() if k in fields or (k == 'analysis_status' and 'status' in fields)}
        row['updated_at'] = utc_now().isoformat()

        rows = self._execute(
            "update_repository", self.client.table(REPOSITORIES).update(row).eq("id", repository_id)
        )
        return _repository_from_row(rows[0]) if rows else updated

    def upsert_file(self, file: SourceFile) -> SourceFile:
        rows = self._execute(
            "upsert_file",
            self.client.table(CODE_FILES).upsert(_file_to_row(file), on_conflict="repo_id,file_path")
        )
        if not rows:
            raise SupabaseError("File upsert returned no rows", {"file_path": file.file_path})
        return _file_from_row(rows[0])

    def list_files(self, repository_id: str) -> List[SourceFile]:
        rows = self._execute(
            "list_files", self.client.table(CODE_FILES).select("*").eq("repo_id", repository_id)
        )
        return [_file_from_row(row) for row in rows]

    def clear_analysis(self, repository_id: str) -> None:
        self._execute(
            "clear_entities", self.client.table(CODE_ENTITIES).delete().eq("repo_id", repository_id)
        )
        self._execute(
            "clear_findings", self.client.table(SECURITY_FINDINGS).delete().eq("repo_id", repository_id)
        )

    def _insert_batched(self, operation: str, table: str, rows: List[Dict[str, Any]]) -> int:
        for start in range(0, len(rows), _INSERT_BATCH_SIZE):
            self._execute(operation, self.client.table(table).insert(rows[start:start + _INSERT_BATCH_SIZE]))
        return len(rows)

    def insert_entities(self, entities: Sequence[CodeEntity]) -> int:
        return self._insert_batched("insert_entities", CODE_ENTITIES, [_entity_to_row(e) for e in entities])

    def insert_findings(self, findings: Sequence[SecurityFinding]) -> int:
        return self._insert_batched(
            "insert_findings", SECURITY_FINDINGS, [_finding_to_row(f) for f in findings]
        )

    def list_entities(self, repository_id: str) -> List[CodeEntity]:
        rows = self._execute(
            "list_entities", self.client.table(CODE_ENTITIES).select("*").eq("repo_id", repository_id)
        )
        return [_entity_from_row(row) for row in rows]

    def list_findings(self, repository_id: str) -> List[SecurityFinding]:
        rows = self._execute(
            "list_findings", self.client.table(SECURITY_FINDINGS).select("*").eq("repo_id", repository_id)
        )
        return [_finding_from_row(row) for row in rows]

    def append_bus_factor(self, metric: BusFactorMetric) -> BusFactorMetric:
        row = metric.model_dump(mode='json', exclude={'id', 'repository_id'})
        row['repo_id'] = metric.repository_id
        rows = self._execute("append_bus_factor", self.client.table(BUS_FACTOR_METRICS).insert(row))
        return self._metric_from_row(rows[0]) if rows else metric

    def list_bus_factor(self, repository_id: str) -> List[BusFactorMetric]:
        rows = self._execute(
            "list_bus_factor",
            self.client.table(BUS_FACTOR_METRICS).select("*").eq("repo_id", repository_id).order("measured_at")
        )
        return [self._metric_from_row(row) for row in rows]

    @staticmethod
    def _metric_from_row(row: Dict[str, Any]) -> BusFactorMetric:
        data = {k: v for k, v in row.items() if k in BusFactorMetric.model_fields}
        data['repository_id'] = row.get('repo_id')
        return BusFactorMetric.model_validate(data)

    def purge_repository(self, repository_id: str) -> bool:
        if self.get_repository(repository_id) is None:
            return False
        for table in (BUS_FACTOR_METRICS, SECURITY_FINDINGS, CODE_ENTITIES, CODE_FILES):
            self._execute(f"purge_{table}", self.client.table(table).delete().eq("repo_id", repository_id))
        self._execute("purge_repository", self.client.table(REPOSITORIES).delete().eq("id", repository_id))
        logger.info("Repository purged", repository_id=repository_id)
        return True
