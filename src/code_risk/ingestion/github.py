"""GitHub repository metadata client."""

from typing import Optional

import httpx

from ..config import config
from ..core.constants import DEFAULT_HTTP_TIMEOUT
from ..exceptions import GitHubError, GitHubNotFoundError
from ..logging import get_logger
from .models import GitHubRepoInfo


logger = get_logger(__name__)


class GitHubClient:
    """Minimal async client for the GitHub REST ``repos`` endpoint."""

    def __init__(self, token: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: float = DEFAULT_HTTP_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize with optional token and base URL; defaults come from configuration."""
        self.token = token if token is not None else config.git.github_token
        self.base_url = (base_url or config.git.github_api_url).rstrip('/')
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "code-risk",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def get_repo_info(self, owner: str, name: str) -> GitHubRepoInfo:
        """Fetch metadata for ``owner/name``.

        Raises:
            GitHubNotFoundError: the repository does not exist or is not visible
            GitHubError: any other API or transport failure
        """
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(f"/repos/{owner}/{name}")
            except httpx.HTTPError as e:
                raise GitHubError.from_exception(f"GitHub request failed for {owner}/{name}", e)

        if response.status_code == 404:
            raise GitHubNotFoundError(f"Repository not found: {owner}/{name}")
        if response.is_error:
            logger.error("GitHub API error", owner=owner, name=name, status=response.status_code)
            raise GitHubError(
                f"GitHub API error for {owner}/{name}",
                {"status_code": response.status_code}
            )

        data = response.json()
        return GitHubRepoInfo(
            github_id=data.get("id"),
            owner=(data.get("owner") or {}).get("login", owner),
            name=data.get("name", name),
            full_name=data.get("full_name", f"{owner}/{name}"),
            description=data.get("description"),
            clone_url=data["clone_url"],
            default_branch=data.get("default_branch"),
            language=data.get("language"),
            size_kb=data.get("size") or 0,
            stars=data.get("stargazers_count") or 0,
            forks=data.get("forks_count") or 0,
            is_private=bool(data.get("private")),
            topics=data.get("topics") or [],
        )
