import os
from typing import List

from dotenv import load_dotenv # For local development with .env file
from pydantic import BaseModel, Field

load_dotenv() # Load .env file if present (for local development)

DEFAULT_GITHUB_API_BASE_URL = "https://api.github.com"


def _split_origins(raw: str) -> List[str]:
    origins = [origin.strip() for origin in raw.split(',') if origin.strip()]
    return origins or ["*"] # Fallback to allow all if misconfigured


class Settings(BaseModel):
    """Runtime tunables for the service and the fetch orchestrator."""
    github_api_base_url: str = DEFAULT_GITHUB_API_BASE_URL
    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:8501", "http://127.0.0.1:8501"])
    max_files: int = Field(60, ge=0)
    max_attempts: int = Field(3, ge=1)
    pacing_delay: float = 1.0 # Seconds between successful remote calls
    error_backoff: float = 5.0
    rate_limit_backoff: float = 60.0 # Used when a rate-limited response has no Retry-After
    request_timeout: float = 30.0
    max_finished_runs: int = Field(20, ge=0) # Completed runs kept for polling and download
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            github_api_base_url=os.getenv("GITHUB_API_BASE_URL", DEFAULT_GITHUB_API_BASE_URL).rstrip('/'),
            allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS", "http://localhost:8501,http://127.0.0.1:8501")),
            max_files=int(os.getenv("MAX_FILES", "60")),
            max_attempts=int(os.getenv("MAX_ATTEMPTS", "3")),
            pacing_delay=float(os.getenv("PACING_DELAY", "1.0")),
            error_backoff=float(os.getenv("ERROR_BACKOFF", "5.0")),
            rate_limit_backoff=float(os.getenv("RATE_LIMIT_BACKOFF", "60.0")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30.0")),
            max_finished_runs=int(os.getenv("MAX_FINISHED_RUNS", "20")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
