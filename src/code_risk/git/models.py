"""Data models for git history analysis."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class BusFactorRiskLevel(str, Enum):
    """Risk classification shared by bus factor, silos and critical files."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


class CommitRecord(BaseModel):
    """One commit header plus the paths it touched."""
    hash: str
    author: str
    email: str = ""
    timestamp: datetime
    files: List[str] = Field(default_factory=list)


class AuthorOwnership(BaseModel):
    """An author's share of the commits on a single file."""
    author: str
    commits: int
    percentage: int


class FileOwnership(BaseModel):
    """Commit distribution for one code file."""
    file_path: str
    primary_author: str
    primary_percentage: int
    total_commits: int
    authors: List[AuthorOwnership] = Field(default_factory=list)


class AuthorStats(BaseModel):
    """Activity summary for one author across all files."""
    author: str
    email: str = ""
    commits: int = 0
    files_touched: int = 0
    first_commit: Optional[datetime] = None
    last_commit: Optional[datetime] = None


class KnowledgeSilo(BaseModel):
    """A top-level area whose single-owner files belong to one author."""
    owner: str
    area: str
    files: int
    commits: int
    risk: BusFactorRiskLevel


class CriticalFile(BaseModel):
    """A busy file with no meaningful second contributor."""
    file_path: str
    owner: str
    commits: int
    ownership_percentage: int
    risk: BusFactorRiskLevel


class GitHistoryReport(BaseModel):
    """Result of replaying a commit log.

    A failed analysis is reported, not raised: ``error`` is set, the score
    is 0 and the risk level is UNKNOWN.
    """
    bus_factor: float = 0.0
    risk_level: BusFactorRiskLevel = BusFactorRiskLevel.UNKNOWN
    total_commits: int = 0
    unique_authors: int = 0
    single_owner_percentage: int = 0
    file_ownership: Dict[str, FileOwnership] = Field(default_factory=dict)
    author_stats: Dict[str, AuthorStats] = Field(default_factory=dict)
    critical_files: List[CriticalFile] = Field(default_factory=list)
    knowledge_silos: List[KnowledgeSilo] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        """True when the analysis failed and only the sentinel result is available."""
        return self.error is not None

    def to_metric(self, repository_id: Optional[str] = None) -> "BusFactorMetric":
        """Snapshot this report for the append-only bus factor history."""
        return BusFactorMetric(
            repository_id=repository_id,
            bus_factor=self.bus_factor,
            risk_level=self.risk_level,
            total_commits=self.total_commits,
            unique_authors=self.unique_authors,
            single_owner_percentage=self.single_owner_percentage,
            critical_files=list(self.critical_files),
            knowledge_silos=list(self.knowledge_silos),
            error=self.error,
        )


class BusFactorMetric(BaseModel):
    """Point-in-time bus factor snapshot for a repository."""
    id: Optional[str] = None
    repository_id: Optional[str] = None
    bus_factor: float
    risk_level: BusFactorRiskLevel
    total_commits: int = 0
    unique_authors: int = 0
    single_owner_percentage: int = 0
    critical_files: List[CriticalFile] = Field(default_factory=list)
    knowledge_silos: List[KnowledgeSilo] = Field(default_factory=list)
    error: Optional[str] = None
    measured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
