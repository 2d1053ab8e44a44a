from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

DEFAULT_OUTPUT_DIRNAME = "aggregated-code"
DEFAULT_EXCLUDE_FILENAME = ".gitignore"

# Directory segments dropped by the filesystem scan before any pattern runs.
DEFAULT_IGNORED_SEGMENTS = (
    ".git",
    ".vs",
    ".idea",
    ".vscode",
    "bin",
    "obj",
    "node_modules",
    "__pycache__",
)

# Always excluded, whatever the user patterns say.
VCS_METADATA_PATTERNS = (".git", ".git/**")

REPORT_TITLE = "# Code Aggregation Report"


class FileStatus(StrEnum):
    """What happened to one candidate file during aggregation."""

    PROCESSED = auto()
    SKIPPED = auto()
    FAILED = auto()


class CandidateFile(BaseModel):
    """A discovered file before the exclusion verdict.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the source root, with POSIX separators.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the source root")


class CodeFile(BaseModel):
    """A file accepted for aggregation, with its cleaned content."""

    model_config = ConfigDict(frozen=True)

    rel: str = Field(..., min_length=1, description="File path relative to the source root")
    content: str = Field(..., description="Content with blank lines removed")

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "content must not be blank"
            raise ValueError(msg)
        return value

    @computed_field
    @property
    def extension(self) -> str:
        """File extension without the leading dot, empty when there is none."""
        return Path(self.rel).suffix.lstrip(".")


class FileOutcome(BaseModel):
    """Result of processing one candidate, keyed by its position in the document."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    rel: str
    status: FileStatus
    fragment: str = ""
    tokens: int = Field(default=0, ge=0)
    error: str = ""


class AggregationResult(BaseModel):
    """Final output of one aggregation run.

    Attributes:
        content: The assembled Markdown document, header included.
        file_count: Number of files that contributed a section.
        token_count: Sum of the token counts of those files.
        files_found: Number of candidates left after discovery and exclusion.
        skipped: Relative paths of files that were empty after cleaning.
        failed: Relative paths of files that could not be read.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    file_count: int = Field(..., ge=0)
    token_count: int = Field(..., ge=0)
    files_found: int = Field(default=0, ge=0)
    skipped: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
