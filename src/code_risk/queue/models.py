"""Job models for the bounded worker queues."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..ingestion.models import utc_now


class JobType(str, Enum):
    """Job types; each gets its own queue and concurrency ceiling."""
    INGESTION = "repo-ingestion"
    ANALYSIS = "code-analysis"


class JobStatus(str, Enum):
    """Lifecycle of a queued job."""
    WAITING = "waiting"
    RUNNING = "running"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"


class Job(BaseModel):
    """A unit of queued work for one repository."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: JobType
    repository_id: str
    payload: Optional[Any] = None
    status: JobStatus = JobStatus.WAITING
    attempts: int = 0
    last_error: Optional[str] = None
    result: Optional[Any] = None
    created_at: datetime = Field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def finished(self) -> bool:
        """Whether the job reached a terminal state."""
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)
