from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from code_aggregator.config import DEFAULT_EXCLUDE_FILENAME, DEFAULT_OUTPUT_DIRNAME
from code_aggregator.exceptions import ConfigurationError

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "CODE_AGGREGATOR_"


def load_environment() -> None:
    """Load the nearest `.env` file without overriding variables already set."""
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)


def _env(name: str, default: Any = None) -> Any:  # noqa: ANN401
    return os.getenv(ENV_PREFIX + name, default)


class Settings(BaseModel):
    """Configuration settings for one aggregation run.

    Defaults for `no_git`, `max_workers` and `log_file` can come from
    `CODE_AGGREGATOR_*` environment variables.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_default=True)

    source: Path = Field(default_factory=Path.cwd, description="Directory to aggregate.")
    output_dir: Path | None = Field(
        default=None,
        description="Report directory, `<source>/aggregated-code` when unset.",
    )
    exclude_file: Path | None = Field(
        default=None,
        description="Gitignore-style pattern file, `<source>/.gitignore` when unset.",
    )
    no_git: bool = Field(default_factory=lambda: _env("NO_GIT", False), description="Do not use git ls-files.")
    max_workers: int | None = Field(
        default_factory=lambda: _env("MAX_WORKERS"),
        ge=1,
        description="Worker threads reading files.",
    )
    token_counter: Literal["regex", "whitespace"] = Field(default="regex", description="Token estimator.")
    encoding_errors: Literal["replace", "ignore", "strict"] = Field(
        default="replace",
        description="UTF-8 decoding error handler.",
    )
    log_file: str = Field(default_factory=lambda: _env("LOG_FILE", ""), description="Log file path.")
    quiet: bool = Field(default=False, description="Do not render progress.")

    def resolved_output_dir(self) -> Path:
        """Return the report directory, defaulting to `aggregated-code` inside the source."""
        return self.output_dir if self.output_dir is not None else self.source / DEFAULT_OUTPUT_DIRNAME

    def resolved_exclude_file(self) -> Path | None:
        """Return the exclude file, falling back to the source's `.gitignore` if it exists."""
        if self.exclude_file is not None:
            return self.exclude_file
        candidate = self.source / DEFAULT_EXCLUDE_FILENAME
        return candidate if candidate.is_file() else None

    @classmethod
    def from_yaml(cls, path: Path, **overrides: Any) -> Settings:  # noqa: ANN401
        """Build settings from a YAML mapping, explicit overrides winning.

        Keys may use dashes or underscores (`max-workers` or `max_workers`).
        Overrides set to None are ignored.

        Args:
            path (Path): the YAML configuration file
            **overrides: values that take precedence over the file

        Raises:
            ConfigurationError: if the file cannot be read or is not a mapping.

        Returns:
            Settings: the merged settings
        """
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(path=path, message=f"Cannot load configuration: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(path=path, message="The configuration must be a mapping.")
        merged = {str(k).replace("-", "_"): v for k, v in data.items()}
        merged.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**merged)
