import asyncio
import logging
import uuid
from typing import Callable, Dict, Set

import httpx # For making asynchronous HTTP requests to GitHub API
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .config import Settings
from .errors import RunFailedError, TooManyFilesError
from .github import GitHubClient
from .models import ConcatRequest, RunCreated, RunResult, RunningResult, SucceededResult
from .orchestrator import FetchOrchestrator, parse_repo_url

settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DOWNLOAD_FILENAME = "concatenated_files.txt"

app = FastAPI(
    title="GitHub File Concatenator",
    description="Fetches selected files of a GitHub repository and concatenates them into one text document.",
    version="1.0.0"
)

# --- CORS Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"], # Allows all methods (GET, POST, DELETE, etc.)
    allow_headers=["*"], # Allows all headers
)


class RunHandle:
    """A run executing in the background, polled by the frontend."""

    def __init__(self, run_id: str, orchestrator: FetchOrchestrator, http_client: httpx.AsyncClient):
        self.run_id = run_id
        self.orchestrator = orchestrator
        self.http_client = http_client
        self.task: "asyncio.Task[RunResult] | None" = None

    async def execute(self, request: ConcatRequest) -> RunResult:
        try:
            return await self.orchestrator.run(request)
        finally:
            await self.http_client.aclose()

    @property
    def finished(self) -> bool:
        return not isinstance(self.orchestrator.result, RunningResult)


class RunRegistry:
    """In-memory runs of this process, keyed by run id.

    At most ``max_finished`` completed runs are kept; older ones are evicted
    when a run starts or finishes.
    """

    def __init__(self, max_finished: int = 20):
        self.max_finished = max_finished
        self.runs: Dict[str, RunHandle] = {}
        self._tasks: Set["asyncio.Task[RunResult]"] = set()

    def start(self, orchestrator: FetchOrchestrator, http_client: httpx.AsyncClient,
              request: ConcatRequest) -> RunHandle:
        self.prune()
        handle = RunHandle(uuid.uuid4().hex, orchestrator, http_client)
        handle.task = asyncio.create_task(handle.execute(request))
        self._tasks.add(handle.task) # The event loop only keeps weak references to tasks
        handle.task.add_done_callback(self._finished)
        self.runs[handle.run_id] = handle
        logger.info("Started run %s for %s", handle.run_id, request.repo_url)
        return handle

    def _finished(self, task: "asyncio.Task[RunResult]") -> None:
        self._tasks.discard(task)
        self.prune()

    def prune(self) -> None:
        finished = [run_id for run_id, handle in self.runs.items() if handle.finished]
        for run_id in finished[:max(len(finished) - self.max_finished, 0)]:
            del self.runs[run_id]
            logger.debug("Evicted finished run %s", run_id)

    def get(self, run_id: str) -> RunHandle:
        handle = self.runs.get(run_id)
        if handle is None:
            raise HTTPException(status_code=404, detail=f"Unknown run: {run_id}")
        return handle


registry = RunRegistry(settings.max_finished_runs)

HttpClientFactory = Callable[[], httpx.AsyncClient]


def get_settings() -> Settings:
    return settings


def get_registry() -> RunRegistry:
    return registry


def get_http_client_factory(current: Settings = Depends(get_settings)) -> HttpClientFactory:
    return lambda: httpx.AsyncClient(timeout=current.request_timeout)


def _validate_url(request: ConcatRequest) -> None:
    try:
        parse_repo_url(request.repo_url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/runs", response_model=RunCreated, status_code=202, summary="Start a concatenation run")
async def start_run(
    request: ConcatRequest,
    current: Settings = Depends(get_settings),
    runs: RunRegistry = Depends(get_registry),
    client_factory: HttpClientFactory = Depends(get_http_client_factory),
):
    """
    Starts fetching a repository in the background. Poll `GET /api/runs/{run_id}`
    for progress and the final document.
    - **repo_url**: URL of the GitHub repository.
    - **blacklist** / **whitelist**: path patterns, one per line.
    - **mode**: `minimal` (whitelist only) or `full` (everything except the blacklist).
    """
    _validate_url(request)
    http_client = client_factory()
    orchestrator = FetchOrchestrator(GitHubClient(http_client, current.github_api_base_url), current)
    handle = runs.start(orchestrator, http_client, request)
    return RunCreated(run_id=handle.run_id, result=orchestrator.result)


@app.get("/api/runs/{run_id}", response_model=RunResult, summary="Poll a run")
async def get_run(run_id: str, runs: RunRegistry = Depends(get_registry)):
    return runs.get(run_id).orchestrator.result


@app.delete("/api/runs/{run_id}", response_model=RunResult, summary="Cancel a run")
async def cancel_run(run_id: str, runs: RunRegistry = Depends(get_registry)):
    handle = runs.get(run_id)
    handle.orchestrator.cancel()
    logger.info("Cancellation requested for run %s", run_id)
    return handle.orchestrator.result


@app.get("/api/runs/{run_id}/download", response_class=PlainTextResponse, summary="Download the document")
async def download_run(run_id: str, runs: RunRegistry = Depends(get_registry)):
    result = runs.get(run_id).orchestrator.result
    if not isinstance(result, SucceededResult):
        raise HTTPException(status_code=409, detail=f"Run {run_id} has no document (status: {result.status}).")
    return PlainTextResponse(
        result.document,
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_FILENAME}"'},
    )


@app.post("/api/concatenate", response_model=SucceededResult, summary="Concatenate repository files")
async def concatenate_api(
    request: ConcatRequest,
    current: Settings = Depends(get_settings),
    client_factory: HttpClientFactory = Depends(get_http_client_factory),
):
    """Runs to completion within the request and returns the document."""
    _validate_url(request)
    async with client_factory() as http_client:
        orchestrator = FetchOrchestrator(GitHubClient(http_client, current.github_api_base_url), current)
        try:
            return await orchestrator.concatenate(request)
        except TooManyFilesError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except RunFailedError as e:
            raise HTTPException(status_code=502, detail=str(e))


@app.get("/", summary="Root Endpoint", include_in_schema=False) # Exclude from OpenAPI docs if just a health check
async def read_root():
    return {"message": "GitHub File Concatenator backend is running. POST to /api/runs to start a run."}

@app.get("/health", summary="Health Check", tags=["Health"])
async def health_check():
    return {"status": "healthy"}
