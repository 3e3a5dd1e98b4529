"""Entry points used by the CLI and by embedding applications."""

import asyncio
from pathlib import Path
from typing import List, Optional, Union

from .analysis.analyzer import AnalysisResult, CodeAnalyzer
from .exceptions import GitHubError, GitHubNotFoundError
from .git.history import GitHistoryAnalyzer
from .git.models import BusFactorMetric, GitHistoryReport
from .git.repository import GitCloner
from .ingestion.github import GitHubClient
from .ingestion.models import Repository, RepositoryRef
from .ingestion.pipeline import IngestionPipeline
from .logging import get_logger
from .queue.models import Job
from .queue.worker import RepositoryWorker
from .storage.base import RiskStore
from .storage.memory import InMemoryStore


logger = get_logger(__name__)


class RiskProfiler:
    """Registers repositories and runs them through ingestion and analysis."""

    def __init__(
        self,
        store: Optional[RiskStore] = None,
        github: Optional[GitHubClient] = None,
        cloner: Optional[GitCloner] = None,
        worker: Optional[RepositoryWorker] = None,
    ):
        """Initialize with optional collaborators; an in-memory store is used by default."""
        self.store = store or InMemoryStore()
        self.github = github or GitHubClient()
        self.cloner = cloner or GitCloner()
        self.history_analyzer = GitHistoryAnalyzer()
        self.worker = worker or RepositoryWorker(
            self.store,
            pipeline=IngestionPipeline(self.store, self.cloner),
            analyzer=CodeAnalyzer(self.store, history_analyzer=self.history_analyzer),
        )

    async def register(self, ref: RepositoryRef, fetch_metadata: bool = True) -> Repository:
        """Create or update the repository identified by ``ref.owner``/``ref.name``.

        Without an explicit clone URL the GitHub API supplies clone URL,
        default branch and metadata. A repository GitHub does not know is an
        error; any other API failure falls back to the public clone URL.
        """
        existing = await asyncio.to_thread(self.store.find_repository, ref.owner, ref.name)
        repository = existing or Repository(owner=ref.owner, name=ref.name, clone_url=ref.resolved_clone_url())
        repository.clone_url = ref.resolved_clone_url()
        if ref.branch:
            repository.default_branch = ref.branch

        if ref.clone_url is None and fetch_metadata:
            try:
                info = await self.github.get_repo_info(ref.owner, ref.name)
            except GitHubNotFoundError:
                raise
            except GitHubError as e:
                logger.warning("GitHub metadata unavailable", full_name=ref.full_name, error=str(e))
            else:
                repository.clone_url = info.clone_url
                repository.default_branch = ref.branch or info.default_branch
                repository.language = info.language
                repository.description = info.description
                repository.size_kb = info.size_kb

        saved = await asyncio.to_thread(self.store.save_repository, repository)
        logger.info("Repository registered", repository_id=saved.id, full_name=saved.full_name, new=existing is None)
        return saved

    async def start(self) -> None:
        """Start the job queues."""
        self.worker.start()

    async def stop(self) -> None:
        """Stop the job queues."""
        await self.worker.stop()

    async def ingest(self, ref: RepositoryRef) -> Job:
        """Register ``ref`` and queue it; returns the ingestion job without waiting."""
        repository = await self.register(ref)
        self.worker.start()
        return await self.worker.enqueue(repository.id)

    async def analyze(self, repository_id: str) -> AnalysisResult:
        """Run a registered repository through both queues and wait for the result."""
        self.worker.start()
        return await self.worker.run(repository_id)

    def git_analyze(self, commit_log: str, repository_id: Optional[str] = None) -> BusFactorMetric:
        """Bus factor snapshot for raw ``git log`` text."""
        return self.history_analyzer.analyze(commit_log).to_metric(repository_id)

    def git_history(self, path: Union[str, Path]) -> GitHistoryReport:
        """Full history report for a local git repository."""
        return self.history_analyzer.analyze(self.cloner.read_commit_log(path))

    def bus_factor_history(self, repository_id: str) -> List[BusFactorMetric]:
        """Stored bus factor snapshots, oldest first."""
        return self.store.list_bus_factor(repository_id)

    def purge(self, repository_id: str) -> bool:
        """Delete a repository and all of its stored analysis data."""
        removed = self.store.purge_repository(repository_id)
        logger.info("Repository purge requested", repository_id=repository_id, removed=removed)
        return removed

    def cleanup_stale_clones(self, max_age_seconds: Optional[int] = None) -> int:
        """Remove leftover clone directories older than ``max_age_seconds``."""
        return self.cloner.cleanup_stale(max_age_seconds)
