from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CodeAggregatorError(Exception):
    """Base exception for errors in the code_aggregator package."""


@dataclass(frozen=True)
class SourceDirectoryError(CodeAggregatorError):
    """Raised when the source directory is missing or cannot be listed."""

    folder: Path
    message: str = "The source directory does not exist or is not readable."

    def __str__(self) -> str:
        return f"{self.message} ({self.folder})"


@dataclass(frozen=True)
class GitCommandError(CodeAggregatorError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        return f"`{self.command}` exited with status {self.returncode}: {self.stderr.strip()}"


@dataclass(frozen=True)
class FileProcessingError(CodeAggregatorError):
    """Raised when a single file cannot be read or decoded."""

    path: Path
    reason: str

    def __str__(self) -> str:
        return self.reason


@dataclass(frozen=True)
class ConfigurationError(CodeAggregatorError):
    """Raised when a configuration file cannot be loaded."""

    path: Path
    message: str = "The configuration file is invalid."

    def __str__(self) -> str:
        return f"{self.message} ({self.path})"
