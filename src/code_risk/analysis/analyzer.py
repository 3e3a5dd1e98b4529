"""Per-repository analysis run: extract, scan, replay history, score."""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ..config import config
from ..exceptions import RepositoryNotFoundError
from ..git.history import GitHistoryAnalyzer
from ..git.models import GitHistoryReport
from ..ingestion.models import IngestionResult, RepositoryStatus, SourceDocument, utc_now
from ..logging import get_logger, repository_context
from ..monitoring.metrics import metrics
from ..parsing.extractors import EntityExtractor
from ..parsing.models import CodeEntity
from ..security.models import SecurityFinding
from ..security.scanner import SecurityScanner
from .risk import RiskAggregator, RiskReport

if TYPE_CHECKING:
    from ..storage.base import RiskStore


logger = get_logger(__name__)


class AnalysisResult(BaseModel):
    """Everything one analysis run produced."""
    repository_id: str
    entities: List[CodeEntity] = Field(default_factory=list)
    findings: List[SecurityFinding] = Field(default_factory=list)
    risk_score: int = 0
    report: RiskReport
    history: Optional[GitHistoryReport] = None
    stored_entities: int = 0
    stored_findings: int = 0


class CodeAnalyzer:
    """Analyzes the documents produced by one ingestion run.

    Files are independent, so extraction and scanning fan out over a small
    thread pool. Runs for the same repository are serialized by a lock and
    always clear previous entities and findings before writing new ones.
    """

    def __init__(
        self,
        store: "RiskStore",
        extractor: Optional[EntityExtractor] = None,
        scanner: Optional[SecurityScanner] = None,
        history_analyzer: Optional[GitHistoryAnalyzer] = None,
        aggregator: Optional[RiskAggregator] = None,
        file_workers: Optional[int] = None,
        max_entities: Optional[int] = None,
        max_findings: Optional[int] = None,
    ):
        """Initialize analyzer; collaborators and limits default to standard instances and configuration."""
        self.store = store
        self.extractor = extractor or EntityExtractor()
        self.scanner = scanner or SecurityScanner()
        self.history_analyzer = history_analyzer or GitHistoryAnalyzer()
        self.aggregator = aggregator or RiskAggregator()
        self.file_workers = file_workers or config.limits.analysis_file_workers
        self.max_entities = max_entities or config.limits.max_entities_per_repo
        self.max_findings = max_findings or config.limits.max_findings_per_repo
        # repository id -> [lock, holders and waiters]
        self._locks: Dict[str, list] = {}

    @asynccontextmanager
    async def exclusive(self, repository_id: str) -> AsyncIterator[None]:
        """Serialize analysis runs of one repository; the lock is dropped once unused."""
        entry = self._locks.get(repository_id)
        if entry is None:
            entry = self._locks[repository_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if not entry[1]:
                del self._locks[repository_id]

    async def analyze(self, repository_id: str, snapshot: IngestionResult) -> AnalysisResult:
        """Analyze ``snapshot`` and mark the repository completed with its risk score."""
        async with self.exclusive(repository_id):
            with repository_context(repository_id):
                started = time.perf_counter()

                repository = await asyncio.to_thread(self.store.get_repository, repository_id)
                if repository is None:
                    raise RepositoryNotFoundError(f"Repository not found: {repository_id}")

                await asyncio.to_thread(self.store.clear_analysis, repository_id)

                entities, findings = await asyncio.to_thread(
                    self.analyze_documents, repository_id, snapshot.documents
                )

                history = None
                if snapshot.commit_log is not None:
                    history = await asyncio.to_thread(self.history_analyzer.analyze, snapshot.commit_log)
                    await asyncio.to_thread(self.store.append_bus_factor, history.to_metric(repository_id))

                stored_entities = await asyncio.to_thread(
                    self.store.insert_entities, self._cap(entities, self.max_entities, "entities")
                )
                stored_findings = await asyncio.to_thread(
                    self.store.insert_findings, self._cap(findings, self.max_findings, "findings")
                )

                report = self.aggregator.generate_report(
                    findings,
                    history,
                    entity_count=len(entities),
                    file_count=len(snapshot.documents),
                )

                await asyncio.to_thread(
                    self.store.set_status,
                    repository_id,
                    RepositoryStatus.COMPLETED,
                    risk_score=report.risk_score,
                    last_error=None,
                    last_analyzed_at=utc_now(),
                )

                duration = time.perf_counter() - started
                metrics.record_analysis(duration, len(entities), (f.severity.value for f in findings))
                logger.info(
                    "Analysis completed",
                    files=len(snapshot.documents),
                    entities=len(entities),
                    findings=len(findings),
                    risk_score=report.risk_score,
                    bus_factor=history.bus_factor if history else None,
                    duration_seconds=round(duration, 3)
                )

                return AnalysisResult(
                    repository_id=repository_id,
                    entities=entities,
                    findings=findings,
                    risk_score=report.risk_score,
                    report=report,
                    history=history,
                    stored_entities=stored_entities,
                    stored_findings=stored_findings,
                )

    def analyze_documents(self, repository_id: Optional[str],
                          documents: Sequence[SourceDocument]) -> Tuple[List[CodeEntity], List[SecurityFinding]]:
        """Extract entities and scan every document; output order follows input order."""
        entities: List[CodeEntity] = []
        findings: List[SecurityFinding] = []
        if not documents:
            return entities, findings

        with ThreadPoolExecutor(max_workers=self.file_workers, thread_name_prefix="analysis") as executor:
            for file_entities, file_findings in executor.map(
                lambda document: self.analyze_document(repository_id, document), documents
            ):
                entities.extend(file_entities)
                findings.extend(file_findings)

        return entities, findings

    def analyze_document(self, repository_id: Optional[str],
                         document: SourceDocument) -> Tuple[List[CodeEntity], List[SecurityFinding]]:
        """Entities and findings for a single file; never raises."""
        entities: List[CodeEntity] = []
        findings: List[SecurityFinding] = []

        try:
            extraction = self.extractor.extract_source(document.content, document.language, document.file_path)
            entities = [
                entity.model_copy(update={'repository_id': repository_id, 'file_id': document.file_id})
                for entity in extraction.entities
            ]
        except Exception as e:
            logger.warning("Entity extraction failed", file_path=document.file_path, error=str(e))

        try:
            findings = self.scanner.scan(
                document.content,
                file_path=document.file_path,
                repository_id=repository_id,
                file_id=document.file_id,
            )
        except Exception as e:
            logger.warning("Security scan failed", file_path=document.file_path, error=str(e))

        return entities, findings

    def _cap(self, items: list, limit: int, kind: str) -> list:
        if len(items) <= limit:
            return items
        logger.warning("Dropping results above storage limit", kind=kind, produced=len(items), limit=limit)
        return items[:limit]
