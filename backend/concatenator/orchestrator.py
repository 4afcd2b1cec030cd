"""Drives one run from a repository URL to a concatenated document.

All remote calls happen strictly one after another: repository metadata, the
recursive tree, then every selected file. Each successful call is followed by
a fixed pacing delay so a run stays inside GitHub's anonymous rate limit, and
failures back off according to ``retry.backoff_for``.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from .config import Settings
from .errors import (
    ConcatenatorError,
    RetriesExhausted,
    RunCancelledError,
    RunFailedError,
    TooManyFilesError,
    describe,
)
from .github import GitHubClient
from .matcher import select_files
from .models import (
    ConcatRequest,
    FailedResult,
    FileOutcome,
    RunningResult,
    RunResult,
    SelectionMode,
    SucceededResult,
    TreeEntry,
    assemble_document,
    parse_patterns,
)
from .retry import Sleep, backoff_for, is_rate_limit, retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_repo_url(url: str) -> Tuple[str, str]:
    """Owner and repository name from the last two segments of ``url``."""
    cleaned = url.strip().rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[:-len(".git")]
    parts = cleaned.split("/")
    if len(parts) < 2 or not parts[-2] or not parts[-1]:
        raise ValueError("Invalid GitHub URL format. Expected: https://github.com/owner/repo")
    return parts[-2], parts[-1]


class FetchOrchestrator:
    def __init__(self, api: GitHubClient, settings: Optional[Settings] = None, sleep: Sleep = asyncio.sleep):
        self.api = api
        self.settings = settings or Settings()
        self._sleep = sleep
        self._cancelled = False
        self.result: RunResult = RunningResult()

    @property
    def progress(self) -> str:
        return self.result.progress if isinstance(self.result, RunningResult) else ""

    def cancel(self) -> None:
        """Asks the run to stop at its next suspension point."""
        self._cancelled = True

    def _report(self, progress: str) -> None:
        logger.debug(progress)
        self.result = RunningResult(progress=progress)

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise RunCancelledError()

    async def _pause(self, seconds: float) -> None:
        self._check_cancelled()
        await self._sleep(seconds)
        self._check_cancelled()

    async def _call(self, request: Callable[[], Awaitable[T]]) -> T:
        self._check_cancelled()
        response = await request()
        await self._pause(self.settings.pacing_delay)
        return response

    def _classify(self, exc: BaseException) -> Optional[float]:
        if isinstance(exc, (TooManyFilesError, RunCancelledError)):
            return None
        return backoff_for(exc, self.settings)

    async def run(self, request: ConcatRequest) -> RunResult:
        """Like ``concatenate`` but records every outcome in ``self.result``."""
        try:
            self.result = await self.concatenate(request)
        except (ConcatenatorError, ValueError) as e:
            logger.error("Run for %s failed: %s", request.repo_url, e)
            self.result = FailedResult(message=str(e))
        return self.result

    async def concatenate(self, request: ConcatRequest) -> SucceededResult:
        owner, repo = parse_repo_url(request.repo_url)
        blacklist = parse_patterns(request.blacklist)
        whitelist = parse_patterns(request.whitelist)
        attempts = self.settings.max_attempts

        def on_retry(attempt: int, wait: float, exc: BaseException) -> None:
            logger.warning("Run attempt %d of %d for %s/%s failed: %s", attempt, attempts, owner, repo, exc)
            if is_rate_limit(exc):
                self._report(f"API rate limit exceeded. Waiting {wait:g} seconds before retry {attempt}...")
            else:
                self._report(f"Error occurred. Retrying in {wait:g} seconds... (Attempt {attempt} of {attempts})")

        try:
            result = await retry_async(
                lambda: self._attempt(owner, repo, request.mode, whitelist, blacklist),
                attempts=attempts,
                classify=self._classify,
                sleep=self._pause,
                on_retry=on_retry,
            )
        except RetriesExhausted as e:
            raise RunFailedError(e.attempts, describe(e.last_error)) from e.last_error
        logger.info("All files processed for %s/%s", owner, repo)
        return result

    async def _attempt(self, owner: str, repo: str, mode: SelectionMode,
                       whitelist: Sequence[str], blacklist: Sequence[str]) -> SucceededResult:
        self._report("Fetching repository information...")
        logger.info("Fetching repo info for %s/%s", owner, repo)
        branch = await self._call(lambda: self.api.get_default_branch(owner, repo))

        self._report("Fetching file tree...")
        tree = await self._call(lambda: self.api.get_tree(owner, repo, branch))

        files = select_files(tree, mode, whitelist, blacklist)
        logger.info("Files to process: %d", len(files))
        if len(files) > self.settings.max_files:
            raise TooManyFilesError(len(files), self.settings.max_files)

        outcomes: List[FileOutcome] = []
        for index, entry in enumerate(files, start=1):
            self._report(f"Processing file {index} of {len(files)}: {entry.path}")
            outcomes.append(await self._fetch_file(owner, repo, entry))
        return SucceededResult(document=assemble_document(outcomes), files=outcomes)

    async def _fetch_file(self, owner: str, repo: str, entry: TreeEntry) -> FileOutcome:
        attempts = self.settings.max_attempts

        def on_retry(attempt: int, wait: float, exc: BaseException) -> None:
            logger.warning("Error fetching %s (Attempt %d): %s", entry.path, attempt, exc)
            if is_rate_limit(exc):
                self._report(f"API rate limit exceeded while fetching {entry.path}. Waiting {wait:g} seconds...")
            else:
                self._report(f"Error fetching {entry.path}. Retrying in {wait:g} seconds... (Attempt {attempt} of {attempts})")

        try:
            content = await retry_async(
                lambda: self._call(lambda: self.api.get_file_content(owner, repo, entry.path)),
                attempts=attempts,
                classify=self._classify,
                sleep=self._pause,
                on_retry=on_retry,
            )
        except RetriesExhausted as e:
            logger.error("Failed to fetch %s after %d attempts. Last error: %s", entry.path, e.attempts, e.last_error)
            return FileOutcome(path=entry.path, error=describe(e.last_error), attempts=e.attempts)
        return FileOutcome(path=entry.path, content=content)
