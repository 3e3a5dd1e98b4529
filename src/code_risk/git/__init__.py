"""Git history analysis and clone management."""

from .history import GitHistoryAnalyzer, classify_bus_factor, is_code_file, round_half_up
from .models import (
    AuthorOwnership, AuthorStats, BusFactorMetric, BusFactorRiskLevel, CommitRecord,
    CriticalFile, FileOwnership, GitHistoryReport, KnowledgeSilo
)
from .repository import GitCloner

__all__ = [
    "GitHistoryAnalyzer",
    "classify_bus_factor",
    "is_code_file",
    "round_half_up",
    "AuthorOwnership",
    "AuthorStats",
    "BusFactorMetric",
    "BusFactorRiskLevel",
    "CommitRecord",
    "CriticalFile",
    "FileOwnership",
    "GitHistoryReport",
    "KnowledgeSilo",
    "GitCloner",
]
