"""Bounded worker queues for ingestion and analysis."""

from .models import Job, JobStatus, JobType
from .job_queue import JobQueue
from .worker import RepositoryWorker

__all__ = [
    "Job",
    "JobStatus",
    "JobType",
    "JobQueue",
    "RepositoryWorker",
]
