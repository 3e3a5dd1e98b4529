"""Tests for the RiskProfiler entry point."""

import os
import time

import httpx
import pytest

from code_risk.exceptions import GitHubNotFoundError
from code_risk.git.models import BusFactorRiskLevel
from code_risk.ingestion.github import GitHubClient
from code_risk.ingestion.models import RepositoryRef, RepositoryStatus
from code_risk.service import RiskProfiler


def github_returning(response):
    return GitHubClient(
        token="",
        base_url="https://api.github.test",
        transport=httpx.MockTransport(lambda request: response),
    )


def unreachable_github():
    def handler(request):
        raise AssertionError(f"unexpected GitHub request: {request.url}")
    return GitHubClient(token="", base_url="https://api.github.test", transport=httpx.MockTransport(handler))


class TestRegister:
    """Test repository registration."""

    @pytest.mark.asyncio
    async def test_explicit_clone_url_skips_github(self, memory_store, cloner):
        """A caller-supplied clone URL needs no metadata lookup."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)

        repository = await profiler.register(RepositoryRef(
            owner="acme", name="sample", clone_url="/srv/git/sample.git", branch="develop"
        ))

        assert repository.clone_url == "/srv/git/sample.git"
        assert repository.default_branch == "develop"
        assert repository.status == RepositoryStatus.PENDING

    @pytest.mark.asyncio
    async def test_github_metadata(self, memory_store, cloner, repo_payload):
        """Without a clone URL the GitHub API fills in the details."""
        profiler = RiskProfiler(memory_store, github=github_returning(httpx.Response(200, json=repo_payload)), cloner=cloner)

        repository = await profiler.register(RepositoryRef(owner="octocat", name="Hello-World"))

        assert repository.clone_url == repo_payload["clone_url"]
        assert repository.default_branch == "main"
        assert repository.language == "JavaScript"
        assert repository.size_kb == 108

    @pytest.mark.asyncio
    async def test_github_outage_falls_back(self, memory_store, cloner):
        """API failures fall back to the public clone URL."""
        profiler = RiskProfiler(memory_store, github=github_returning(httpx.Response(502)), cloner=cloner)

        repository = await profiler.register(RepositoryRef(owner="octocat", name="Hello-World"))

        assert repository.clone_url == "https://github.com/octocat/Hello-World.git"

    @pytest.mark.asyncio
    async def test_unknown_github_repository(self, memory_store, cloner):
        """A repository GitHub does not know is not registered."""
        profiler = RiskProfiler(memory_store, github=github_returning(httpx.Response(404)), cloner=cloner)

        with pytest.raises(GitHubNotFoundError):
            await profiler.register(RepositoryRef(owner="octocat", name="nope"))

        assert memory_store.list_repositories() == []

    @pytest.mark.asyncio
    async def test_register_twice_keeps_id(self, memory_store, cloner):
        """Registration is keyed by owner and name."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)
        ref = RepositoryRef(owner="acme", name="sample", clone_url="/srv/git/sample.git")

        first = await profiler.register(ref)
        second = await profiler.register(ref)

        assert first.id == second.id


class TestAnalyze:
    """Test full analysis through the profiler."""

    @pytest.mark.asyncio
    async def test_analyze_and_reanalyze(self, memory_store, cloner, sample_git_repo):
        """Two runs of the same repository complete and append bus factor history."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)
        repository = await profiler.register(RepositoryRef(
            owner="acme", name="sample", clone_url=str(sample_git_repo)
        ))

        try:
            first = await profiler.analyze(repository.id)
            second = await profiler.analyze(repository.id)
        finally:
            await profiler.stop()

        assert first.risk_score == second.risk_score == 40
        assert len(memory_store.list_findings(repository.id)) == 1
        assert len(profiler.bus_factor_history(repository.id)) == 2
        assert memory_store.get_repository(repository.id).status == RepositoryStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_ingest_returns_job(self, memory_store, cloner, sample_git_repo):
        """Queueing returns immediately with the ingestion job."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)

        try:
            job = await profiler.ingest(RepositoryRef(owner="acme", name="sample", clone_url=str(sample_git_repo)))
            await profiler.worker.join()
        finally:
            await profiler.stop()

        assert job.repository_id == memory_store.find_repository("acme", "sample").id
        assert profiler.worker.latest_analysis(job.repository_id) is not None


class TestUtilities:
    """Test the synchronous helpers."""

    def test_git_analyze(self, memory_store, cloner, commit_log):
        """Raw log text becomes a bus factor metric."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)

        metric = profiler.git_analyze(commit_log([("Alice", ["a.py", "b.py"])]), repository_id="r1")

        assert metric.repository_id == "r1"
        assert metric.bus_factor == 1.0
        assert metric.risk_level == BusFactorRiskLevel.CRITICAL

    def test_git_history(self, memory_store, cloner, sample_git_repo):
        """A local repository path yields a full history report."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)

        report = profiler.git_history(sample_git_repo)

        assert report.unique_authors == 2
        assert set(report.author_stats) == {"Alice", "Bob"}

    def test_purge(self, memory_store, cloner):
        """Purge reports whether anything was removed."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)

        assert profiler.purge("missing") is False

    def test_cleanup_stale_clones(self, memory_store, cloner):
        """Only clone directories past the age limit are removed."""
        profiler = RiskProfiler(memory_store, github=unreachable_github(), cloner=cloner)
        stale = cloner.prepare_destination("acme", "old")
        fresh = cloner.prepare_destination("acme", "new")
        past = time.time() - 7200
        os.utime(stale, (past, past))

        removed = profiler.cleanup_stale_clones(max_age_seconds=3600)

        assert removed == 1
        assert not stale.exists()
        assert fresh.exists()
