"""System-wide constants and configuration values."""

from typing import Final

# Timeout Constants (in seconds)
DEFAULT_CLONE_TIMEOUT: Final[int] = 5 * 60
DEFAULT_ANALYSIS_TIMEOUT: Final[int] = 10 * 60
DEFAULT_HTTP_TIMEOUT: Final[int] = 30

# Retry Constants
DEFAULT_RETRY_BACKOFF_BASE: Final[float] = 2.0

# Storage Constants
MAX_STORED_CONTENT_CHARS: Final[int] = 50000
MAX_EVIDENCE_LENGTH: Final[int] = 100

# Security Scanner Constants
BASE_CONFIDENCE: Final[float] = 0.8
TEST_CONTEXT_PENALTY: Final[float] = 0.2
COMMENT_CONTEXT_PENALTY: Final[float] = 0.3
MIN_CONFIDENCE: Final[float] = 0.3
TEST_MARKER_TOKENS: Final[tuple] = ("test", "spec")
COMMENT_PREFIXES: Final[tuple] = ("//", "*")

# Risk Score Weights
SEVERITY_WEIGHTS: Final[dict] = {"critical": 40, "high": 20, "medium": 5, "low": 1}
MAX_RISK_SCORE: Final[int] = 100
MAX_TOP_FINDINGS: Final[int] = 10

# Git History Constants
SINGLE_OWNER_THRESHOLD: Final[int] = 80
SECONDARY_OWNER_THRESHOLD: Final[int] = 20
SILO_MIN_FILES: Final[int] = 5
SILO_HIGH_RISK_FILES: Final[int] = 10
CRITICAL_FILE_MIN_SCORE: Final[float] = 10.0
MAX_CRITICAL_FILES: Final[int] = 20
COMMIT_HEADER_PREFIX: Final[str] = "COMMIT|"
GIT_LOG_FORMAT: Final[str] = "COMMIT|%H|%an|%ae|%at"

# GitHub
DEFAULT_GITHUB_API_URL: Final[str] = "https://api.github.com"
GITHUB_CLONE_URL_TEMPLATE: Final[str] = "https://github.com/{owner}/{name}.git"
