"""Pattern-based security scanning."""

from .models import FindingCategory, FindingStatus, SecurityFinding, Severity
from .rules import DEFAULT_RULES, SecurityRule
from .scanner import SecurityScanner

__all__ = [
    "FindingCategory",
    "FindingStatus",
    "SecurityFinding",
    "Severity",
    "DEFAULT_RULES",
    "SecurityRule",
    "SecurityScanner",
]
