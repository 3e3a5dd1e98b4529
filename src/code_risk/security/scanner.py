"""Line-oriented security scanner."""

from typing import List, Optional, Pattern, Sequence, Tuple

from ..core.constants import (
    BASE_CONFIDENCE, COMMENT_CONTEXT_PENALTY, COMMENT_PREFIXES, MAX_EVIDENCE_LENGTH,
    MIN_CONFIDENCE, TEST_CONTEXT_PENALTY, TEST_MARKER_TOKENS
)
from ..logging import get_logger
from .models import SecurityFinding
from .rules import DEFAULT_RULES, SecurityRule


logger = get_logger(__name__)


class SecurityScanner:
    """Applies an ordered rule set to raw source text.

    Every rule is tested against every line on its own, so a single line
    can produce findings from several rules. The scanner does not care
    which language the text is written in.
    """

    def __init__(self, rules: Optional[Sequence[SecurityRule]] = None):
        """Compile ``rules`` (default rule set when omitted); bad patterns are dropped."""
        self.rules: List[Tuple[SecurityRule, Pattern[str]]] = []
        for rule in (rules if rules is not None else DEFAULT_RULES):
            try:
                self.rules.append((rule, rule.compile()))
            except Exception as e:
                logger.warning("Skipping security rule with invalid pattern", rule_id=rule.id, error=str(e))

    @property
    def rule_ids(self) -> List[str]:
        """Identifiers of the active rules, in evaluation order."""
        return [rule.id for rule, _ in self.rules]

    def scan(self, content: str, file_path: str = "", repository_id: Optional[str] = None,
             file_id: Optional[str] = None) -> List[SecurityFinding]:
        """Scan ``content`` and return findings ordered by rule, then line."""
        findings: List[SecurityFinding] = []
        if not content:
            return findings

        lines = content.split('\n')

        for rule, pattern in self.rules:
            for index, line in enumerate(lines):
                try:
                    if not pattern.search(line):
                        continue
                    findings.append(SecurityFinding(
                        severity=rule.severity,
                        category=rule.category,
                        file_path=file_path,
                        line_number=index + 1,
                        description=rule.name,
                        evidence=line.strip()[:MAX_EVIDENCE_LENGTH],
                        confidence=self.confidence(line, rule.base_confidence),
                        rule_id=rule.id,
                        repository_id=repository_id,
                        file_id=file_id,
                    ))
                except Exception as e:
                    logger.warning(
                        "Security rule failed on line",
                        rule_id=rule.id,
                        file_path=file_path,
                        line=index + 1,
                        error=str(e)
                    )

        return findings

    @staticmethod
    def confidence(line: str, base: float = BASE_CONFIDENCE) -> float:
        """Confidence for a match on ``line``, reduced for test and comment context."""
        confidence = base
        if any(token in line for token in TEST_MARKER_TOKENS):
            confidence -= TEST_CONTEXT_PENALTY
        if line.strip().startswith(COMMENT_PREFIXES):
            confidence -= COMMENT_CONTEXT_PENALTY
        return round(min(BASE_CONFIDENCE, max(MIN_CONFIDENCE, confidence)), 2)
