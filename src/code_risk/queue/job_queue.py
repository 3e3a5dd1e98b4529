"""Bounded-concurrency asyncio job queue with retry, backoff and timeout."""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..exceptions import JobError, JobTimeoutError
from ..ingestion.models import utc_now
from ..logging import get_logger
from ..monitoring.metrics import metrics
from .models import Job, JobStatus


logger = get_logger(__name__)

JobHandler = Callable[[Job], Awaitable[Any]]
JobCallback = Callable[[Job, BaseException], Any]
JobHook = Callable[[Job], Any]


class JobQueue:
    """A FIFO queue drained by a fixed number of worker tasks.

    Each attempt runs as its own task; an attempt that exceeds ``timeout``
    is cancelled and counts as a non-retryable failure. A ``TimeoutError``
    raised by the handler itself is an ordinary, retryable failure.
    Exceptions carrying ``retryable = False`` also fail the job at once.
    Other failures are retried until ``max_attempts`` attempts were made,
    sleeping ``backoff_seconds * 2 ** (attempt - 1)`` in between.

    Finished jobs lose their payload. Only the most recent finished job per
    repository is kept, plus the latest completed one when that job failed.
    """

    def __init__(
        self,
        name: str,
        handler: JobHandler,
        concurrency: int,
        max_attempts: int = 1,
        timeout: Optional[float] = None,
        backoff_seconds: float = 0.0,
        maxsize: int = 0,
        on_retry: Optional[JobCallback] = None,
        on_failed: Optional[JobCallback] = None,
        on_finished: Optional[JobHook] = None,
    ):
        """Initialize queue; ``maxsize`` bounds waiting jobs (0 means unbounded)."""
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.name = name
        self.handler = handler
        self.concurrency = concurrency
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.backoff_seconds = backoff_seconds
        self.on_retry = on_retry
        self.on_failed = on_failed
        self.on_finished = on_finished

        self.jobs: Dict[str, Job] = {}
        self._done: Dict[str, asyncio.Event] = {}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        """Whether worker tasks are active."""
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Jobs waiting to be picked up."""
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn the worker tasks; must be called from a running event loop."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"{self.name}-worker-{index}")
            for index in range(self.concurrency)
        ]
        logger.info("Job queue started", queue=self.name, concurrency=self.concurrency)

    async def submit(self, job: Job) -> Job:
        """Enqueue ``job``; waits for space when the queue is bounded and full."""
        if job.id in self.jobs and not self.jobs[job.id].finished:
            raise JobError(f"Job already queued: {job.id}", {"queue": self.name})
        job.status = JobStatus.WAITING
        self.jobs[job.id] = job
        self._done[job.id] = asyncio.Event()
        await self._queue.put(job)
        metrics.update_queue_depth(self.name, self._queue.qsize())
        logger.info("Job queued", queue=self.name, job_id=job.id, repository_id=job.repository_id)
        return job

    async def join(self) -> None:
        """Wait until every submitted job reached a terminal state."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the worker tasks; running attempts are abandoned."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        logger.info("Job queue stopped", queue=self.name)

    async def wait(self, job: Job) -> Job:
        """Wait for a submitted job to reach a terminal state."""
        if job.finished:
            return job
        done = self._done.get(job.id)
        if done is None:
            raise JobError(f"Job was never submitted: {job.id}", {"queue": self.name})
        await done.wait()
        return job

    def find_jobs(self, repository_id: str) -> List[Job]:
        """Jobs for a repository, oldest first."""
        return [job for job in self.jobs.values() if job.repository_id == repository_id]

    def backoff_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt``."""
        if not self.backoff_seconds:
            return 0.0
        return self.backoff_seconds * 2 ** (attempt - 1)

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            metrics.update_queue_depth(self.name, self._queue.qsize())
            try:
                await self._run(job)
            except Exception as e:
                # Only callback bugs end up here; the worker keeps serving.
                logger.error("Job worker error", queue=self.name, job_id=job.id, error=str(e), exc_info=True)
            finally:
                self._done[job.id].set()
                await self._notify(self.on_finished, job)
                self._retire(job)
                self._queue.task_done()

    def _retire(self, job: Job) -> None:
        """Drop the payload of a finished job and evict older finished jobs of its repository."""
        job.payload = None
        keep_completed = job.status != JobStatus.COMPLETED
        for other in reversed(list(self.jobs.values())):
            if other is job or other.repository_id != job.repository_id or not other.finished:
                continue
            if keep_completed and other.status == JobStatus.COMPLETED:
                keep_completed = False
                continue
            del self.jobs[other.id]
            self._done.pop(other.id, None)

    async def _attempt(self, job: Job) -> Any:
        """Run the handler once, raising ``JobTimeoutError`` when it overruns."""
        if not self.timeout:
            return await self.handler(job)

        task = asyncio.ensure_future(self.handler(job))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            task.cancel()
            # let the handler finish its cleanup before the job is failed
            await asyncio.gather(task, return_exceptions=True)
            raise JobTimeoutError(
                f"Job timed out after {self.timeout:g}s",
                {"queue": self.name, "attempt": job.attempts}
            )
        return task.result()

    async def _run(self, job: Job) -> None:
        started = time.perf_counter()
        job.started_at = utc_now()

        while True:
            job.attempts += 1
            job.status = JobStatus.RUNNING
            logger.info("Job attempt started", queue=self.name, job_id=job.id, attempt=job.attempts)

            try:
                job.result = await self._attempt(job)
            except Exception as e:
                error: BaseException = e
            else:
                job.status = JobStatus.COMPLETED
                job.last_error = None
                job.finished_at = utc_now()
                metrics.record_job(self.name, job.status.value, time.perf_counter() - started)
                logger.info("Job completed", queue=self.name, job_id=job.id, attempts=job.attempts)
                return

            job.last_error = str(error)
            retryable = getattr(error, 'retryable', True)

            if retryable and job.attempts < self.max_attempts:
                delay = self.backoff_for(job.attempts)
                job.status = JobStatus.RETRYING
                metrics.record_retry(self.name)
                logger.warning(
                    "Job attempt failed, retrying",
                    queue=self.name,
                    job_id=job.id,
                    attempt=job.attempts,
                    delay_seconds=delay,
                    error=job.last_error
                )
                await self._notify(self.on_retry, job, error)
                if delay:
                    await asyncio.sleep(delay)
                continue

            job.status = JobStatus.FAILED
            job.finished_at = utc_now()
            metrics.record_job(self.name, job.status.value, time.perf_counter() - started)
            logger.error(
                "Job failed",
                queue=self.name,
                job_id=job.id,
                attempts=job.attempts,
                retryable=retryable,
                error=job.last_error
            )
            await self._notify(self.on_failed, job, error)
            return

    async def _notify(self, callback: Optional[Callable[..., Any]], job: Job, *args: Any) -> None:
        if callback is None:
            return
        try:
            outcome = callback(job, *args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error("Job callback failed", queue=self.name, job_id=job.id, error=str(e))
