"""Risk aggregation and per-repository analysis runs."""

from .risk import FindingsSummary, RiskAggregator, RiskReport
from .analyzer import AnalysisResult, CodeAnalyzer

__all__ = [
    "FindingsSummary",
    "RiskAggregator",
    "RiskReport",
    "AnalysisResult",
    "CodeAnalyzer",
]
