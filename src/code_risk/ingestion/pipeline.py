"""Ingestion pipeline: clone, select files, store them and read history."""

import asyncio
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..config import config
from ..exceptions import CodeRiskError, IngestionError, RepositoryNotFoundError
from ..git.repository import GitCloner
from ..logging import get_logger, repository_context
from ..monitoring.metrics import metrics
from ..parsing.languages import detect_language
from .discovery import discover_files
from .models import IngestionResult, Repository, RepositoryStatus, SourceDocument, SourceFile

if TYPE_CHECKING:
    from ..storage.base import RiskStore


logger = get_logger(__name__)


class IngestionPipeline:
    """Turns a registered repository into stored files plus in-memory documents.

    Blocking work (git, filesystem, storage writes) runs in worker threads so
    the event loop stays responsive. Wall-clock limits are enforced by the
    job queue; when a run is abandoned the worker thread notices at the next
    file boundary and stops, and the clone directory is removed either way.
    """

    def __init__(
        self,
        store: "RiskStore",
        cloner: Optional[GitCloner] = None,
        max_files: Optional[int] = None,
        max_file_size_bytes: Optional[int] = None,
        max_stored_content_chars: Optional[int] = None,
    ):
        """Initialize ingestion pipeline; limits default to configuration."""
        self.store = store
        self.cloner = cloner or GitCloner()
        self.max_files = max_files or config.limits.max_files_per_repo
        self.max_file_size_bytes = max_file_size_bytes or config.limits.max_file_size_bytes
        self.max_stored_content_chars = max_stored_content_chars or config.limits.max_stored_content_chars

    async def ingest(self, repository_id: str) -> IngestionResult:
        """Run one ingestion pass for ``repository_id``.

        The repository moves ``queued -> cloning -> parsing``; completing or
        failing the run is up to the caller.
        """
        repository = await asyncio.to_thread(self.store.get_repository, repository_id)
        if repository is None:
            raise RepositoryNotFoundError(f"Repository not found: {repository_id}")

        with repository_context(repository_id, full_name=repository.full_name):
            abandoned = threading.Event()
            clones: List[Path] = []

            try:
                await asyncio.to_thread(self.store.set_status, repository_id, RepositoryStatus.CLONING)
                destination = await asyncio.to_thread(self._clone, repository, clones, abandoned)

                await asyncio.to_thread(self.store.set_status, repository_id, RepositoryStatus.PARSING)
                size_bytes = await asyncio.to_thread(self.cloner.check_size, destination)
                await asyncio.to_thread(
                    self.store.update_repository, repository_id, size_kb=size_bytes // 1024
                )

                documents, discovered, skipped = await asyncio.to_thread(
                    self.collect_files, repository_id, destination, abandoned
                )
                commit_log = await self._read_commit_log(destination)
            finally:
                abandoned.set()
                if clones:
                    # runs to the end even when this task is cancelled
                    await asyncio.shield(self._discard(clones))

            logger.info(
                "Ingestion finished",
                discovered=discovered,
                stored=len(documents),
                skipped=skipped,
                size_bytes=size_bytes
            )

            return IngestionResult(
                repository_id=repository_id,
                documents=documents,
                commit_log=commit_log,
                discovered_files=discovered,
                skipped_files=skipped,
                size_bytes=size_bytes,
            )

    def _clone(self, repository: Repository, clones: List[Path], abandoned: threading.Event) -> Path:
        """Create a clone directory, record it in ``clones`` and clone into it (blocking)."""
        destination = self.cloner.prepare_destination(repository.owner, repository.name)
        clones.append(destination)
        try:
            self.cloner.clone_into(repository.clone_url, destination, repository.default_branch)
        finally:
            if abandoned.is_set():
                # The run was given up while git was still working.
                self.cloner.cleanup(destination)
        if abandoned.is_set():
            raise IngestionError("Ingestion abandoned during clone", {"repository_id": repository.id})
        return destination

    async def _discard(self, clones: List[Path]) -> None:
        for path in clones:
            await asyncio.to_thread(self.cloner.cleanup, path)

    def collect_files(self, repository_id: str, root: Path,
                      abandoned: Optional[threading.Event] = None) -> Tuple[List[SourceDocument], int, int]:
        """Store every selected file under ``root``.

        Returns ``(documents, discovered, skipped)``. Files above the size
        limit or unreadable files are skipped; storage failures propagate.
        """
        candidates = discover_files(root, self.max_files)
        documents: List[SourceDocument] = []
        skipped = 0

        for path in candidates:
            if abandoned is not None and abandoned.is_set():
                raise IngestionError("Ingestion abandoned", {"repository_id": repository_id})

            relative = path.relative_to(root).as_posix()
            try:
                stat = path.stat()
            except OSError as e:
                logger.warning("Failed to stat file", file_path=relative, error=str(e))
                metrics.record_file_skipped("unreadable")
                skipped += 1
                continue

            if stat.st_size > self.max_file_size_bytes:
                logger.debug("Skipping large file", file_path=relative, size_bytes=stat.st_size)
                metrics.record_file_skipped("too_large")
                skipped += 1
                continue

            try:
                content = path.read_text(encoding='utf-8', errors='replace')
            except OSError as e:
                logger.warning("Failed to read file", file_path=relative, error=str(e))
                metrics.record_file_skipped("unreadable")
                skipped += 1
                continue

            language = detect_language(relative).value
            stored = self.store.upsert_file(SourceFile(
                repository_id=repository_id,
                file_path=relative,
                content=content[:self.max_stored_content_chars],
                language=language,
                line_count=len(content.split('\n')),
                size_bytes=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))
            metrics.record_file_ingested()

            documents.append(SourceDocument(
                file_id=stored.id,
                file_path=relative,
                language=language,
                content=content,
            ))

        return documents, len(candidates), skipped

    async def _read_commit_log(self, path: Path) -> Optional[str]:
        """Commit log of the clone, or None when it cannot be read."""
        try:
            return await asyncio.to_thread(self.cloner.read_commit_log, path)
        except CodeRiskError as e:
            logger.warning("Failed to read commit log", error=str(e))
            return None
