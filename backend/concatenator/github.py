import logging
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote

import httpx # For making asynchronous HTTP requests to GitHub API

from .config import DEFAULT_GITHUB_API_BASE_URL
from .errors import GitHubAPIError, RATE_LIMIT_STATUSES
from .models import TreeEntry

logger = logging.getLogger(__name__)

JSON_ACCEPT = "application/vnd.github.v3+json"
RAW_ACCEPT = "application/vnd.github.v3.raw"


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in seconds, or None when absent or not a number of seconds."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(seconds, 0.0)


def _error_from_response(response: httpx.Response, what: str) -> GitHubAPIError:
    status = response.status_code
    detail_message = f"GitHub API error for {what}: Status {status}."
    if status == 404:
        detail_message = f"Repository or path not found: {what}"
    elif status in RATE_LIMIT_STATUSES:
        gh_message = "Access forbidden by GitHub." if status == 403 else "Too many requests."
        try:
            gh_message = response.json().get("message", gh_message)
        except (ValueError, AttributeError):
            pass # Ignore if response is not a JSON object

        if response.headers.get("X-RateLimit-Remaining") == "0" or status == 429:
            detail_message = f"GitHub API rate limit exceeded. {gh_message}"
        else:
            detail_message = f"{gh_message} This could be a private repository or a rate limit issue."
    return GitHubAPIError(
        detail_message,
        status_code=status,
        retry_after=parse_retry_after(response.headers.get("Retry-After")),
    )


class GitHubClient:
    """The three GitHub REST calls the concatenator needs.

    Every successful response has its rate-limit headers logged; they are
    informational only. Failures surface as ``GitHubAPIError``.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str = DEFAULT_GITHUB_API_BASE_URL):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def _get(self, path: str, what: str, accept: str = JSON_ACCEPT,
                   params: Optional[dict] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        headers = {"Accept": accept, "X-GitHub-Api-Version": "2022-11-28"}
        try:
            response = await self.client.get(url, headers=headers, params=params)
        except httpx.RequestError as e: # For network errors, timeouts etc.
            raise GitHubAPIError(f"Network error while contacting GitHub API: {e}") from e

        if response.is_error:
            error = _error_from_response(response, what)
            if error.is_rate_limited:
                if error.retry_after is not None:
                    logger.warning("Rate limited. Retry after %s seconds", error.retry_after)
                else:
                    logger.warning("Rate limited without Retry-After header")
            raise error

        self._log_rate_limit(response)
        return response

    @staticmethod
    def _log_rate_limit(response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining is not None:
            logger.info("Remaining requests: %s", remaining)
        if reset is not None:
            try:
                reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc).isoformat()
            except ValueError:
                reset_at = reset
            logger.info("Rate limit resets at: %s", reset_at)

    async def get_default_branch(self, owner: str, repo: str) -> str:
        response = await self._get(f"/repos/{owner}/{repo}", f"{owner}/{repo}")
        data = response.json()
        branch = data.get("default_branch") if isinstance(data, dict) else None
        if not branch:
            raise GitHubAPIError(f"No default branch reported for {owner}/{repo}")
        logger.info("Default branch: %s", branch)
        return branch

    async def get_tree(self, owner: str, repo: str, branch: str) -> List[TreeEntry]:
        response = await self._get(
            f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='/')}",
            f"{owner}/{repo}@{branch}",
            params={"recursive": "1"},
        )
        data = response.json()
        if not isinstance(data, dict) or not isinstance(data.get("tree"), list):
            raise GitHubAPIError(f"Unexpected response format from GitHub API for the tree of {owner}/{repo}.")
        if data.get("truncated"):
            logger.warning("Tree for %s/%s was truncated by GitHub; some files are missing", owner, repo)
        tree = [TreeEntry.model_validate(item) for item in data["tree"]]
        logger.info("File tree fetched, %d items found", len(tree))
        return tree

    async def get_file_content(self, owner: str, repo: str, path: str) -> str:
        response = await self._get(
            f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}",
            f"{owner}/{repo}/{path}",
            accept=RAW_ACCEPT,
        )
        return response.content.decode("utf-8", errors="replace")
