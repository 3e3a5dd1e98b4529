"""Custom exceptions for the repository risk profiler."""

from typing import Any, Dict, Optional


class CodeRiskError(Exception):
    """Base exception for risk profiler errors."""

    # Consulted by the job queue when deciding whether to retry.
    retryable: bool = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        """Initialize with message, optional details, and cause."""
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

        # Set the cause for proper exception chaining
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """String representation with details."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message

    @classmethod
    def from_exception(cls, message: str, cause: Exception, details: Optional[Dict[str, Any]] = None):
        """Create exception with proper chaining from another exception."""
        return cls(message, details, cause)


class ConfigurationError(CodeRiskError):
    """Exception raised for configuration-related errors."""
    retryable = False


class ValidationError(CodeRiskError):
    """Exception raised for validation errors."""
    retryable = False


class RepositoryError(CodeRiskError):
    """Exception raised for repository-related errors."""
    pass


class RepositoryNotFoundError(RepositoryError):
    """The repository does not exist locally or upstream."""
    retryable = False


class RepositoryTooLargeError(RepositoryError):
    """The checked-out tree exceeds the configured size limit."""
    retryable = False


class CloneError(RepositoryError):
    """Cloning failed; usually a transient network problem."""
    pass


class InvalidStatusTransitionError(RepositoryError):
    """A repository status change violates the analysis state machine."""
    retryable = False


class ParsingError(CodeRiskError):
    """Exception raised for parsing-related errors."""
    pass


class IngestionError(CodeRiskError):
    """Ingestion pipeline related errors."""
    pass


class AnalysisError(CodeRiskError):
    """Analysis run related errors."""
    pass


class StorageError(CodeRiskError):
    """Exception raised when the persistence collaborator fails."""
    pass


class SupabaseError(StorageError):
    """Supabase-specific errors."""
    pass


class GitHubError(CodeRiskError):
    """GitHub API errors."""
    pass


class GitHubNotFoundError(GitHubError):
    """The requested GitHub repository does not exist or is not visible."""
    retryable = False


class JobError(CodeRiskError):
    """Base exception for job queue errors."""
    pass


class JobTimeoutError(JobError):
    """Exception raised when a job exceeds its wall-clock budget."""
    retryable = False
