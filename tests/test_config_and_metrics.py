"""Tests for configuration, logging and metrics."""

import pydantic
import pytest
from prometheus_client import CollectorRegistry

from code_risk.config import AppConfig, GitConfig, LimitsConfig
from code_risk.exceptions import ConfigurationError
from code_risk.logging import get_logger, repository_context
from code_risk.monitoring.metrics import MetricsCollector


class TestConfig:
    """Test settings validation."""

    def test_limit_defaults(self, monkeypatch):
        """Defaults match the documented resource limits."""
        for name in ("MAX_FILES_PER_REPO", "MAX_STORED_CONTENT_CHARS", "INGESTION_MAX_ATTEMPTS"):
            monkeypatch.delenv(name, raising=False)

        limits = LimitsConfig(_env_file=None)

        assert limits.max_files_per_repo == 1000
        assert limits.max_stored_content_chars == 50000
        assert limits.ingestion_max_attempts == 3
        assert limits.analysis_max_attempts == 2

    def test_limits_from_environment(self, monkeypatch):
        """Limits are read from environment variables."""
        monkeypatch.setenv("MAX_FILES_PER_REPO", "25")

        assert LimitsConfig(_env_file=None).max_files_per_repo == 25

    def test_limits_must_be_positive(self):
        """Zero or negative limits are rejected."""
        with pytest.raises(pydantic.ValidationError):
            LimitsConfig(max_files_per_repo=0, _env_file=None)

    def test_invalid_log_format(self):
        """Only json and console are accepted."""
        with pytest.raises(ConfigurationError):
            AppConfig(LOG_FORMAT="xml", _env_file=None)

    def test_github_api_url_is_normalized(self):
        """Trailing slashes are dropped."""
        assert GitConfig(github_api_url="https://ghe.example.com/api/v3/", _env_file=None).github_api_url == (
            "https://ghe.example.com/api/v3"
        )

    def test_invalid_clone_depth(self):
        """Clone depth must be positive when set."""
        with pytest.raises(ConfigurationError):
            GitConfig(clone_depth=0, _env_file=None)


class TestLogging:
    """Test logger helpers."""

    def test_logger_with_repository_context(self):
        """Binding repository context does not break logging calls."""
        logger = get_logger(__name__)

        with repository_context("repo-1", full_name="acme/sample"):
            logger.info("Inside repository context", step="test")


class TestMetrics:
    """Test the Prometheus collector."""

    def test_records_are_exported(self):
        """Recorded values show up in the exposition output."""
        collector = MetricsCollector(CollectorRegistry())

        collector.record_job("repo-ingestion", "completed", 1.5)
        collector.record_retry("repo-ingestion")
        collector.update_queue_depth("code-analysis", 4)
        collector.record_file_ingested()
        collector.record_file_skipped("too_large")
        collector.record_analysis(0.2, 12, ["critical", "low", "low"])

        output = collector.get_metrics()

        assert 'code_risk_jobs_total{queue="repo-ingestion",status="completed"} 1.0' in output
        assert 'code_risk_job_retries_total{queue="repo-ingestion"} 1.0' in output
        assert 'code_risk_queue_depth{queue="code-analysis"} 4.0' in output
        assert 'code_risk_files_skipped_total{reason="too_large"} 1.0' in output
        assert 'code_risk_findings_total{severity="low"} 2.0' in output
        assert "code_risk_entities_total 12.0" in output
        assert "code_risk_system_info" in output
