"""Aggregation pipeline.

Discovery and exclusion fix the candidate order once. Each candidate is then
loaded, cleaned, formatted and counted in a worker thread; completed outcomes
are collected in the calling thread, which reports progress and finally
reassembles the fragments in candidate order.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING

from code_aggregator.config import AggregationResult, CandidateFile, FileOutcome, FileStatus
from code_aggregator.discovery import discover_files
from code_aggregator.exceptions import FileProcessingError
from code_aggregator.ignore import PatternSet, load_exclude_file, should_exclude
from code_aggregator.loader import load_code_file, relpath
from code_aggregator.logging import logger
from code_aggregator.output_construction import (
    assemble_document,
    build_report_header,
    format_code_file,
    format_error,
)
from code_aggregator.tokens import count_tokens

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from code_aggregator.discovery import TrackedFileSource
    from code_aggregator.tokens import TokenCounter

    ProgressCallback = Callable[[str, float], None]


def collect_candidates(
    root: Path,
    output_dir: Path | None,
    patterns: PatternSet,
    *,
    sources: Sequence[TrackedFileSource] | None = None,
) -> list[CandidateFile]:
    """Discover files and keep those the patterns do not exclude.

    The exclude file itself is configuration, not content, and is dropped too.
    """
    exclude_file = patterns.source.resolve() if patterns.source is not None else None
    candidates: list[CandidateFile] = []
    for path in discover_files(root, output_dir, sources=sources):
        if exclude_file is not None and path == exclude_file:
            continue
        rel = relpath(path, root)
        if should_exclude(rel, patterns):
            continue
        candidates.append(CandidateFile(path=path, rel=rel))
    return candidates


def process_candidate(
    index: int,
    candidate: CandidateFile,
    *,
    token_counter: TokenCounter = count_tokens,
    encoding_errors: str = "replace",
) -> FileOutcome:
    """Load, clean, format and count one candidate.

    Read and decode failures are turned into a FAILED outcome whose fragment
    shows the error in place of the file content.
    """
    try:
        code_file = load_code_file(candidate, encoding_errors=encoding_errors)
    except FileProcessingError as exc:
        logger.warning("file_processing_failed", path=candidate.rel, error=str(exc))
        return FileOutcome(
            index=index,
            rel=candidate.rel,
            status=FileStatus.FAILED,
            fragment=format_error(candidate.rel, str(exc)),
            error=str(exc),
        )
    if code_file is None:
        logger.debug("file_skipped_blank", path=candidate.rel)
        return FileOutcome(index=index, rel=candidate.rel, status=FileStatus.SKIPPED)
    return FileOutcome(
        index=index,
        rel=candidate.rel,
        status=FileStatus.PROCESSED,
        fragment=format_code_file(code_file),
        tokens=token_counter(code_file.content),
    )


def _run_tasks(
    candidates: Sequence[CandidateFile],
    *,
    on_progress: ProgressCallback | None,
    max_workers: int | None,
    token_counter: TokenCounter,
    encoding_errors: str,
) -> list[FileOutcome]:
    total = len(candidates)
    outcomes: list[FileOutcome | None] = [None] * total
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(
                process_candidate,
                index,
                candidate,
                token_counter=token_counter,
                encoding_errors=encoding_errors,
            )
            for index, candidate in enumerate(candidates)
        ]
        for done, future in enumerate(as_completed(futures), start=1):
            outcome = future.result()
            outcomes[outcome.index] = outcome
            if on_progress is not None:
                on_progress(candidates[outcome.index].path.name, done / total)
    return [o for o in outcomes if o is not None]


def aggregate(
    source_directory: Path | str,
    output_directory: Path | str | None = None,
    exclude_source: Path | str | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    sources: Sequence[TrackedFileSource] | None = None,
    max_workers: int | None = None,
    token_counter: TokenCounter = count_tokens,
    encoding_errors: str = "replace",
) -> AggregationResult:
    """Aggregate a source tree into one Markdown report.

    Args:
        source_directory (Path | str): the tree to aggregate
        output_directory (Path | str | None): where reports are written; its
            content is never aggregated
        exclude_source (Path | str | None): gitignore-style pattern file
        on_progress (ProgressCallback | None): called as `(file_name, fraction)`
            once per candidate, from the calling thread; the last call has 1.0
        sources (Sequence[TrackedFileSource] | None): file sources, git then
            filesystem walk by default
        max_workers (int | None): thread pool size, executor default if None
        token_counter (TokenCounter): maps cleaned text to a token count
        encoding_errors (str): UTF-8 decoder error handler; "strict" makes
            undecodable files fail

    Raises:
        SourceDirectoryError: if the source directory is missing or unreadable.

    Returns:
        AggregationResult: the document and its counters
    """
    root = Path(source_directory).resolve()
    output_dir = Path(output_directory) if output_directory is not None else None
    patterns = load_exclude_file(Path(exclude_source) if exclude_source is not None else None)

    candidates = collect_candidates(root, output_dir, patterns, sources=sources)
    logger.info("aggregation_started", source=str(root), candidates=len(candidates), patterns=len(patterns))

    outcomes = (
        _run_tasks(
            candidates,
            on_progress=on_progress,
            max_workers=max_workers,
            token_counter=token_counter,
            encoding_errors=encoding_errors,
        )
        if candidates
        else []
    )

    processed = [o for o in outcomes if o.status == FileStatus.PROCESSED]
    token_total = sum(o.tokens for o in processed)
    header = build_report_header(
        root,
        files_found=len(candidates),
        files_processed=len(processed),
        token_count=token_total,
    )
    result = AggregationResult(
        content=assemble_document(header, (o.fragment for o in outcomes)),
        file_count=len(processed),
        token_count=token_total,
        files_found=len(candidates),
        skipped=tuple(o.rel for o in outcomes if o.status == FileStatus.SKIPPED),
        failed=tuple(o.rel for o in outcomes if o.status == FileStatus.FAILED),
    )
    logger.info(
        "aggregation_finished",
        files_found=result.files_found,
        files_processed=result.file_count,
        tokens=result.token_count,
        skipped=len(result.skipped),
        failed=len(result.failed),
    )
    return result
