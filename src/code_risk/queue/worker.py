"""Wires the ingestion and analysis queues to the pipeline and analyzer."""

import asyncio
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from ..analysis.analyzer import AnalysisResult, CodeAnalyzer
from ..config import LimitsConfig, config
from ..exceptions import AnalysisError, RepositoryNotFoundError
from ..ingestion.models import RepositoryStatus, can_transition
from ..ingestion.pipeline import IngestionPipeline
from ..logging import get_logger
from .job_queue import JobQueue
from .models import Job, JobStatus, JobType

if TYPE_CHECKING:
    from ..storage.base import RiskStore


logger = get_logger(__name__)


class RepositoryWorker:
    """Runs repositories through ingestion and then analysis.

    Ingestion and analysis have independent concurrency ceilings, attempt
    counts and timeouts. A successful ingestion job hands its in-memory
    snapshot to a new analysis job. When a job gives up, the repository is
    marked ``failed`` with the last error message.

    A repository has at most one run in flight. Requests that arrive while
    a run is queued or running attach to it and share its outcome.
    """

    def __init__(
        self,
        store: "RiskStore",
        pipeline: Optional[IngestionPipeline] = None,
        analyzer: Optional[CodeAnalyzer] = None,
        limits: Optional[LimitsConfig] = None,
    ):
        """Initialize worker; limits default to configuration."""
        self.store = store
        self.pipeline = pipeline or IngestionPipeline(store)
        self.analyzer = analyzer or CodeAnalyzer(store)
        self.limits = limits or config.limits
        # repository id -> (ingestion job, future resolved with the run's last job)
        self._in_flight: Dict[str, Tuple[Job, asyncio.Future]] = {}

        self.ingestion_queue = JobQueue(
            JobType.INGESTION.value,
            self._handle_ingestion,
            concurrency=self.limits.max_concurrent_clones,
            max_attempts=self.limits.ingestion_max_attempts,
            timeout=self.limits.clone_timeout_seconds,
            backoff_seconds=self.limits.retry_backoff_seconds,
            on_retry=self._requeue,
            on_failed=self._mark_failed,
            on_finished=self._ingestion_finished,
        )
        self.analysis_queue = JobQueue(
            JobType.ANALYSIS.value,
            self._handle_analysis,
            concurrency=self.limits.max_concurrent_analyses,
            max_attempts=self.limits.analysis_max_attempts,
            timeout=self.limits.analysis_timeout_seconds,
            on_failed=self._mark_failed,
            on_finished=self._finish,
        )

    def start(self) -> None:
        """Start both queues."""
        self.ingestion_queue.start()
        self.analysis_queue.start()

    async def stop(self) -> None:
        """Stop both queues; runs still in flight are resolved as interrupted."""
        await self.ingestion_queue.stop()
        await self.analysis_queue.stop()
        for repository_id in list(self._in_flight):
            self._resolve(repository_id, None)

    async def join(self) -> None:
        """Wait until all ingestion jobs and the analysis jobs they spawned are finished."""
        await self.ingestion_queue.join()
        await self.analysis_queue.join()

    def in_flight(self, repository_id: str) -> bool:
        """Whether a run for the repository is queued or running."""
        return repository_id in self._in_flight

    async def enqueue(self, repository_id: str) -> Job:
        """Start a run for the repository, or return the ingestion job of the run in flight."""
        job, _ = await self._start(repository_id)
        return job

    async def run(self, repository_id: str) -> AnalysisResult:
        """Queue a repository and wait for its analysis result.

        Raises ``AnalysisError`` carrying the last error when either job fails.
        """
        ingestion, outcome = await self._start(repository_id)
        last = await asyncio.shield(outcome)

        if last is None or not last.finished:
            raise AnalysisError(
                "Run was interrupted",
                {"repository_id": repository_id, "job_id": ingestion.id}
            )
        if last.status != JobStatus.COMPLETED:
            raise AnalysisError(
                last.last_error or f"{last.type.value} failed",
                {"repository_id": repository_id, "job_id": last.id}
            )
        return last.result

    def latest_analysis(self, repository_id: str) -> Optional[AnalysisResult]:
        """Result of the most recent completed analysis job for a repository."""
        for job in reversed(self.analysis_queue.find_jobs(repository_id)):
            if job.status == JobStatus.COMPLETED:
                return job.result
        return None

    async def _start(self, repository_id: str) -> Tuple[Job, asyncio.Future]:
        active = self._in_flight.get(repository_id)
        if active is not None:
            logger.info("Joining run in flight", repository_id=repository_id, job_id=active[0].id)
            return active

        job = Job(type=JobType.INGESTION, repository_id=repository_id)
        outcome = asyncio.get_running_loop().create_future()
        # registered before the first await so concurrent callers see it
        self._in_flight[repository_id] = (job, outcome)
        try:
            await asyncio.to_thread(self._mark_queued, repository_id)
            await self.ingestion_queue.submit(job)
        except BaseException:
            self._resolve(repository_id, None)
            raise
        return job, outcome

    def _mark_queued(self, repository_id: str) -> None:
        repository = self.store.get_repository(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(f"Repository not found: {repository_id}")
        if repository.status == RepositoryStatus.QUEUED:
            self.store.update_repository(repository_id, last_error=None)
        else:
            self.store.set_status(repository_id, RepositoryStatus.QUEUED, last_error=None)

    def _resolve(self, repository_id: str, last: Optional[Job]) -> None:
        entry = self._in_flight.pop(repository_id, None)
        if entry is not None and not entry[1].done():
            entry[1].set_result(last)

    def _ingestion_finished(self, job: Job) -> None:
        # a completed ingestion hands the run over to its analysis job
        if job.status != JobStatus.COMPLETED:
            self._finish(job)

    def _finish(self, job: Job) -> None:
        active = self._in_flight.get(job.repository_id)
        if active is not None:
            self._resolve(job.repository_id, job)

    async def _handle_ingestion(self, job: Job) -> Job:
        result = await self.pipeline.ingest(job.repository_id)
        return await self.analysis_queue.submit(Job(
            type=JobType.ANALYSIS,
            repository_id=job.repository_id,
            payload=result,
        ))

    async def _handle_analysis(self, job: Job) -> AnalysisResult:
        return await self.analyzer.analyze(job.repository_id, job.payload)

    async def _requeue(self, job: Job, error: BaseException) -> None:
        await self._move(job.repository_id, RepositoryStatus.QUEUED, last_error=str(error))

    async def _mark_failed(self, job: Job, error: BaseException) -> None:
        await self._move(job.repository_id, RepositoryStatus.FAILED, last_error=str(error))

    async def _move(self, repository_id: str, status: RepositoryStatus, **fields: Any) -> None:
        repository = await asyncio.to_thread(self.store.get_repository, repository_id)
        if repository is None:
            logger.warning("Repository disappeared", repository_id=repository_id, status=status.value)
            return
        if repository.status == status:
            await asyncio.to_thread(self.store.update_repository, repository_id, **fields)
            return
        if not can_transition(repository.status, status):
            logger.warning(
                "Skipping status change",
                repository_id=repository_id,
                current=repository.status.value,
                target=status.value
            )
            return
        try:
            await asyncio.to_thread(self.store.set_status, repository_id, status, **fields)
        except RepositoryNotFoundError:
            logger.warning("Repository disappeared", repository_id=repository_id, status=status.value)
