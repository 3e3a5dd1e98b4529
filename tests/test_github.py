"""Tests for the GitHub metadata client."""

import httpx
import pytest

from code_risk.exceptions import GitHubError, GitHubNotFoundError
from code_risk.ingestion.github import GitHubClient


def client_for(handler, token=None):
    return GitHubClient(
        token=token,
        base_url="https://api.github.test",
        transport=httpx.MockTransport(handler),
    )


class TestGitHubClient:
    """Test GitHubClient.get_repo_info."""

    @pytest.mark.asyncio
    async def test_repo_info(self, repo_payload):
        """Metadata is mapped from the API payload."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=repo_payload)

        info = await client_for(handler, token="ghp_test").get_repo_info("octocat", "Hello-World")

        assert info.full_name == "octocat/Hello-World"
        assert info.clone_url == "https://github.com/octocat/Hello-World.git"
        assert info.default_branch == "main"
        assert info.size_kb == 108
        assert info.stars == 80
        assert info.topics == ["demo"]
        assert requests[0].url.path == "/repos/octocat/Hello-World"
        assert requests[0].headers["Authorization"] == "Bearer ghp_test"

    @pytest.mark.asyncio
    async def test_no_token_sends_no_authorization(self, repo_payload):
        """Anonymous requests carry no credentials."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=repo_payload)

        await client_for(handler, token="").get_repo_info("octocat", "Hello-World")

        assert "Authorization" not in requests[0].headers

    @pytest.mark.asyncio
    async def test_not_found(self):
        """404 is reported as a missing repository."""
        client = client_for(lambda request: httpx.Response(404, json={"message": "Not Found"}))

        with pytest.raises(GitHubNotFoundError):
            await client.get_repo_info("octocat", "nope")

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Other error statuses raise GitHubError with the status code."""
        client = client_for(lambda request: httpx.Response(503))

        with pytest.raises(GitHubError) as exc_info:
            await client.get_repo_info("octocat", "Hello-World")

        assert not isinstance(exc_info.value, GitHubNotFoundError)
        assert exc_info.value.details["status_code"] == 503

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Network failures are wrapped."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GitHubError):
            await client_for(handler).get_repo_info("octocat", "Hello-World")
