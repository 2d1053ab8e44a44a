"""
code_aggregator — Aggregate a source tree into one Markdown document.

Overview
--------
The tool lists the files of a project (`git ls-files` when available, a
filesystem walk otherwise), drops what the exclude file (a `.gitignore` by
default) rules out, reads the rest concurrently with blank lines stripped, and
writes a single report:

    # Code Aggregation Report
    Source Directory: ...
    Total Files Found: ...
    Total Files Processed: ...
    Total Tokens: ...

    ## File: src/app.py

    ```py
    ...
    ```

Reports land in `<source>/aggregated-code/<timestamp>.md` unless
`--output-dir` says otherwise; that directory is never aggregated itself.

Usage
-----
    code-aggregator path/to/project
    code-aggregator . --exclude-file .aggregatorignore --no-git --max-workers 8
    code-aggregator . --config aggregator.yaml --log-file run.log
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from code_aggregator import __version__
from code_aggregator.aggregator import aggregate
from code_aggregator.discovery import default_sources
from code_aggregator.exceptions import ConfigurationError, SourceDirectoryError
from code_aggregator.logging import logger, setup_logging
from code_aggregator.settings import Settings, load_environment
from code_aggregator.tokens import get_token_counter

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="code-aggregator",
        description="Aggregate a source tree into a single Markdown document.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("source", nargs="?", type=Path, default=None, help="Directory to aggregate (default: cwd).")
    p.add_argument("--output-dir", type=Path, default=None, help="Report directory.")
    p.add_argument("--exclude-file", type=Path, default=None, help="Gitignore-style pattern file.")
    p.add_argument("--no-git", action="store_true", default=None, help="Do not use git ls-files.")
    p.add_argument("--max-workers", type=int, default=None, help="Worker threads reading files.")
    p.add_argument(
        "--token-counter",
        choices=["regex", "whitespace"],
        default=None,
        help="Token estimator.",
    )
    p.add_argument(
        "--encoding-errors",
        choices=["replace", "ignore", "strict"],
        default=None,
        help="How undecodable bytes are handled.",
    )
    p.add_argument("--config", type=Path, default=None, help="YAML configuration file.")
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    p.add_argument("--quiet", action="store_true", default=None, help="Do not render progress.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command line arguments into `Settings`.

    Options given on the command line override the `--config` file.
    Invalid values end the process through `argparse` (exit status 2).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    explicit: dict[str, Any] = {k: v for k, v in vars(args).items() if v is not None and k != "config"}
    try:
        if args.config is not None:
            return Settings.from_yaml(args.config, **explicit)
        return Settings(**explicit)
    except (ValidationError, ConfigurationError) as exc:
        parser.error(str(exc))


def print_progress(file_name: str, fraction: float) -> None:
    """Render a one-line progress indicator on stderr."""
    line = f"\r[{fraction:6.1%}] Aggregating: {file_name}"
    print(f"{line:<80.80}", end="" if fraction < 1.0 else "\n", file=sys.stderr, flush=True)


def write_report(output_dir: Path, content: str, stamp: str | None = None) -> Path:
    """Write `content` to a new `<stamp>.md` in `output_dir`, never replacing a report.

    Runs within the same second get `<stamp>_1.md`, `<stamp>_2.md`, ...
    """
    stamp = stamp or datetime.now().astimezone().strftime("%Y%m%d_%H%M%S")
    output_dir.mkdir(parents=True, exist_ok=True)
    suffix = 0
    while True:
        path = output_dir / (f"{stamp}.md" if suffix == 0 else f"{stamp}_{suffix}.md")
        try:
            with path.open("x", encoding="utf-8") as fh:
                fh.write(content)
        except FileExistsError:
            suffix += 1
            continue
        return path


def main(argv: Sequence[str] | None = None) -> int:
    load_environment()
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    source = settings.source.resolve()
    output_dir = settings.resolved_output_dir()
    exclude_file = settings.resolved_exclude_file()

    try:
        result = aggregate(
            source,
            output_dir,
            exclude_file,
            None if settings.quiet else print_progress,
            sources=default_sources(use_git=not settings.no_git),
            max_workers=settings.max_workers,
            token_counter=get_token_counter(settings.token_counter),
            encoding_errors=settings.encoding_errors,
        )
    except SourceDirectoryError as exc:
        logger.error("aggregation_failed", source=str(source), error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    out_path = write_report(output_dir, result.content)
    logger.info("report_written", path=str(out_path))

    print("Aggregation complete!")
    print(f"Total files processed: {result.file_count}")
    print(f"Total tokens: {result.token_count}")
    print(f"Output file: {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
