from enum import Enum
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

# Default exclusions offered in the blacklist box
DEFAULT_BLACKLIST: Tuple[str, ...] = (
    "node_modules/",
    ".git/",
    "dist/",
    "build/",
    ".next/",
    "public/",
    "*.test.*",
    "*.spec.*",
    "*.min.*",
    "*.map",
    "*.lock",
    "package-lock.json",
    "yarn.lock",
    "README.md",
    "LICENSE",
    ".gitignore",
    ".env*",
    "*.log",
    "*.svg",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.ico",
    "requirements.txt",
    "PRIVACY.md",
    "pnpm-lock.yaml",
    "**/components/ui/**",
)


def parse_patterns(text: str) -> Tuple[str, ...]:
    """Splits a textarea value into trimmed, non-blank patterns."""
    return tuple(line.strip() for line in text.splitlines() if line.strip())


class SelectionMode(str, Enum):
    minimal = "minimal" # Whitelist only
    full = "full" # Everything except the blacklist


class TreeEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str
    type: str # 'blob', 'tree', 'commit'

    @property
    def is_blob(self) -> bool:
        return self.type == "blob"


class ConcatRequest(BaseModel):
    repo_url: str
    blacklist: str = Field("\n".join(DEFAULT_BLACKLIST), description="Exclusion patterns, one per line")
    whitelist: str = Field("", description="Inclusion patterns, one per line (minimal mode only)")
    mode: SelectionMode = SelectionMode.minimal


class FileOutcome(BaseModel):
    path: str
    content: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    def render(self) -> str:
        if self.ok:
            return f"// {self.path}\n{self.content}\n\n"
        return f"// Error fetching {self.path} after {self.attempts} attempts. Last error: {self.error}\n\n"


def assemble_document(outcomes: List[FileOutcome]) -> str:
    return "".join(outcome.render() for outcome in outcomes)


class RunningResult(BaseModel):
    status: Literal["running"] = "running"
    progress: str = ""


class SucceededResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["succeeded"] = "succeeded"
    document: str
    files: List[FileOutcome] = Field(default_factory=list)


class FailedResult(BaseModel):
    status: Literal["failed"] = "failed"
    message: str


RunResult = Annotated[Union[RunningResult, SucceededResult, FailedResult], Field(discriminator="status")]


class RunCreated(BaseModel):
    run_id: str
    result: RunResult
