"""Pattern rules applied by the security scanner.

Rules are plain data. Adding a rule means adding a record to
``DEFAULT_RULES`` (or passing a custom list to ``SecurityScanner``), never
writing a new matcher.
"""

import re
from typing import List, Pattern

from pydantic import BaseModel, ConfigDict

from ..core.constants import BASE_CONFIDENCE
from .models import FindingCategory, Severity


class SecurityRule(BaseModel):
    """A single line-oriented regex rule."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    pattern: str
    severity: Severity
    category: FindingCategory
    base_confidence: float = BASE_CONFIDENCE
    ignore_case: bool = False

    def compile(self) -> Pattern[str]:
        """Compile the rule pattern; raises ``re.error`` for a bad pattern."""
        return re.compile(self.pattern, re.IGNORECASE if self.ignore_case else 0)


DEFAULT_RULES: List[SecurityRule] = [
    SecurityRule(
        id="SECRET_API_KEY",
        name="Potential API Key Exposure",
        pattern=r"""['"`]([a-zA-Z0-9_-]{20,})['"`].*api.*key|api.*key.*['"`]([a-zA-Z0-9_-]{20,})['"`]""",
        severity=Severity.HIGH,
        category=FindingCategory.SECRET,
        ignore_case=True,
    ),
    SecurityRule(
        id="HARDCODED_PASSWORD",
        name="Hardcoded Password",
        pattern=r"""password\s*[=:]\s*['"`]([^'"`]{4,})['"`]""",
        severity=Severity.CRITICAL,
        category=FindingCategory.SECRET,
        ignore_case=True,
    ),
    SecurityRule(
        id="SQL_INJECTION",
        name="Potential SQL Injection",
        pattern=r"""\b(?:query|execute|exec)\s*\(\s*[`"'].*\$\{|\b(?:query|execute|exec)\s*\(\s*[^)]*\+""",
        severity=Severity.HIGH,
        category=FindingCategory.VULNERABILITY,
        ignore_case=True,
    ),
    SecurityRule(
        id="EVAL_USAGE",
        name="Dangerous eval() Usage",
        pattern=r"\beval\s*\(",
        severity=Severity.HIGH,
        category=FindingCategory.VULNERABILITY,
    ),
    SecurityRule(
        id="INSECURE_RANDOM",
        name="Insecure Randomness",
        pattern=r"Math\.random\s*\(\)",
        severity=Severity.MEDIUM,
        category=FindingCategory.VULNERABILITY,
    ),
    SecurityRule(
        id="DEBUGGER_STATEMENT",
        name="Debugger Statement in Code",
        pattern=r"debugger\s*;|\bpdb\.set_trace\s*\(|\bbreakpoint\s*\(\s*\)",
        severity=Severity.LOW,
        category=FindingCategory.MISCONFIGURATION,
    ),
    SecurityRule(
        id="TODO_SECURITY",
        name="Security TODO Comment",
        pattern=r"(?://|#).*TODO.*(?:security|auth|encrypt|hash)",
        severity=Severity.MEDIUM,
        category=FindingCategory.RISK,
        ignore_case=True,
    ),
    SecurityRule(
        id="HTTP_NOT_HTTPS",
        name="Insecure HTTP URL",
        pattern=r"""['"`]http://[^'"`]+['"`]""",
        severity=Severity.MEDIUM,
        category=FindingCategory.MISCONFIGURATION,
        ignore_case=True,
    ),
    SecurityRule(
        id="DISABLED_SSL_VERIFICATION",
        name="SSL Verification Disabled",
        pattern=r"rejectUnauthorized\s*:\s*false|NODE_TLS_REJECT_UNAUTHORIZED.*0|\bverify\s*=\s*False\b",
        severity=Severity.HIGH,
        category=FindingCategory.MISCONFIGURATION,
        ignore_case=True,
    ),
    SecurityRule(
        id="BACKDOOR_SHELL",
        name="Potential Backdoor (shell execution)",
        pattern=r"""(child_process|exec|spawn|execSync|system|popen)\s*\(\s*[`"'].*(?:curl|wget|nc|bash|sh|python)""",
        severity=Severity.CRITICAL,
        category=FindingCategory.BACKDOOR,
        ignore_case=True,
    ),
]
