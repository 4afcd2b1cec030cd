# tests/conftest.py
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import httpx
import pytest

from concatenator.config import Settings
from concatenator.github import GitHubClient
from concatenator.models import ConcatRequest, RunResult
from concatenator.orchestrator import FetchOrchestrator

OWNER, REPO = "octo", "demo"
REPO_URL = f"https://github.com/{OWNER}/{REPO}"


def blob(path: str) -> dict:
    return {"path": path, "type": "blob", "mode": "100644", "sha": "0" * 40}


def tree_dir(path: str) -> dict:
    return {"path": path, "type": "tree", "mode": "040000", "sha": "1" * 40}


class FakeGitHub:
    """In-memory GitHub REST API served through httpx.MockTransport.

    Queued failures for a route ("repo", "tree" or a file path) are returned
    before the normal response, one per request.
    """

    def __init__(self, tree: List[dict], files: Optional[Dict[str, str]] = None, default_branch: str = "main"):
        self.tree = tree
        self.files = files or {}
        self.default_branch = default_branch
        self.truncated = False
        self.failures: Dict[str, List[httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def fail(self, key: str, *responses: httpx.Response) -> None:
        self.failures.setdefault(key, []).extend(responses)

    def _route(self, path: str) -> str:
        prefix = f"/repos/{OWNER}/{REPO}"
        rest = path[len(prefix):]
        if rest == "":
            return "repo"
        if rest.startswith("/git/trees/"):
            return "tree"
        if rest.startswith("/contents/"):
            return rest[len("/contents/"):]
        return "unknown"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = self._route(request.url.path)
        queued = self.failures.get(key)
        if queued:
            return queued.pop(0)

        headers = {"X-RateLimit-Remaining": "59", "X-RateLimit-Reset": "1700000000"}
        if key == "repo":
            return httpx.Response(200, json={"default_branch": self.default_branch}, headers=headers)
        if key == "tree":
            return httpx.Response(200, json={"sha": "abc", "tree": self.tree, "truncated": self.truncated}, headers=headers)
        if key in self.files:
            return httpx.Response(200, text=self.files[key], headers=headers)
        return httpx.Response(404, json={"message": "Not Found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def content_requests(self) -> List[str]:
        return [self._route(r.url.path) for r in self.requests if "/contents/" in r.url.path]


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def run_with(fake: FakeGitHub, request: ConcatRequest, sleep: Optional[RecordingSleep] = None,
             settings: Optional[Settings] = None) -> RunResult:
    async def _go():
        async with fake.client() as http_client:
            orchestrator = FetchOrchestrator(GitHubClient(http_client), settings or Settings(), sleep or RecordingSleep())
            return await orchestrator.run(request)
    return asyncio.run(_go())


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
