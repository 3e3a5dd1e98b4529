"""Data models for security findings."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..core.constants import BASE_CONFIDENCE, MIN_CONFIDENCE


class Severity(str, Enum):
    """Finding severity, most severe first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FindingCategory(str, Enum):
    """What kind of problem a rule looks for."""
    SECRET = "secret"
    VULNERABILITY = "vulnerability"
    BACKDOOR = "backdoor"
    MISCONFIGURATION = "misconfiguration"
    RISK = "risk"


class FindingStatus(str, Enum):
    """Review status of a finding."""
    OPEN = "open"
    FALSE_POSITIVE = "false_positive"
    RESOLVED = "resolved"


class SecurityFinding(BaseModel):
    """One rule matching one line of source."""
    severity: Severity
    category: FindingCategory
    file_path: str = ""
    line_number: int = Field(ge=1)
    description: str
    evidence: str = ""
    confidence: float = Field(default=BASE_CONFIDENCE, ge=MIN_CONFIDENCE, le=BASE_CONFIDENCE)
    rule_id: str
    status: FindingStatus = FindingStatus.OPEN
    repository_id: Optional[str] = None
    file_id: Optional[str] = None
