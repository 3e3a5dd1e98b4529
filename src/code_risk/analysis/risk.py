"""Risk scoring and findings reports."""

from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..core.constants import MAX_RISK_SCORE, MAX_TOP_FINDINGS, SEVERITY_WEIGHTS
from ..git.models import BusFactorRiskLevel, GitHistoryReport
from ..security.models import SecurityFinding, Severity


class FindingsSummary(BaseModel):
    """Finding counts by severity."""
    critical: int = Field(default=0, ge=0)
    high: int = Field(default=0, ge=0)
    medium: int = Field(default=0, ge=0)
    low: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)


class RiskReport(BaseModel):
    """Aggregated view of one analysis run."""
    risk_score: int = Field(ge=0, le=MAX_RISK_SCORE)
    summary: FindingsSummary
    categories: Dict[str, List[SecurityFinding]] = Field(default_factory=dict)
    top_risks: List[SecurityFinding] = Field(default_factory=list)
    bus_factor: Optional[float] = None
    bus_factor_risk_level: Optional[BusFactorRiskLevel] = None
    entity_count: int = 0
    file_count: int = 0


class RiskAggregator:
    """Pure functions over findings; holds no state between calls."""

    def summarize(self, findings: Iterable[SecurityFinding]) -> FindingsSummary:
        """Count findings per severity."""
        counts = {severity: 0 for severity in Severity}
        total = 0
        for finding in findings:
            counts[Severity(finding.severity)] += 1
            total += 1
        return FindingsSummary(
            critical=counts[Severity.CRITICAL],
            high=counts[Severity.HIGH],
            medium=counts[Severity.MEDIUM],
            low=counts[Severity.LOW],
            total=total,
        )

    def calculate_risk_score(self, summary: FindingsSummary) -> int:
        """``min(100, 40*critical + 20*high + 5*medium + 1*low)``."""
        score = (
            summary.critical * SEVERITY_WEIGHTS["critical"]
            + summary.high * SEVERITY_WEIGHTS["high"]
            + summary.medium * SEVERITY_WEIGHTS["medium"]
            + summary.low * SEVERITY_WEIGHTS["low"]
        )
        return min(MAX_RISK_SCORE, score)

    def categorize(self, findings: Iterable[SecurityFinding]) -> Dict[str, List[SecurityFinding]]:
        """Group findings by category, keeping encounter order."""
        categories: Dict[str, List[SecurityFinding]] = {}
        for finding in findings:
            categories.setdefault(finding.category.value, []).append(finding)
        return categories

    def top_findings(self, findings: Iterable[SecurityFinding], limit: int = MAX_TOP_FINDINGS) -> List[SecurityFinding]:
        """First ``limit`` critical or high findings, in encounter order."""
        top = []
        for finding in findings:
            if finding.severity in (Severity.CRITICAL, Severity.HIGH):
                top.append(finding)
                if len(top) >= limit:
                    break
        return top

    def generate_report(self, findings: Sequence[SecurityFinding],
                        history: Optional[GitHistoryReport] = None,
                        entity_count: int = 0, file_count: int = 0) -> RiskReport:
        """Build the full report; bus factor is attached when history is given."""
        summary = self.summarize(findings)
        report = RiskReport(
            risk_score=self.calculate_risk_score(summary),
            summary=summary,
            categories=self.categorize(findings),
            top_risks=self.top_findings(findings),
            entity_count=entity_count,
            file_count=file_count,
        )
        if history is not None:
            report.bus_factor = history.bus_factor
            report.bus_factor_risk_level = history.risk_level
        return report
