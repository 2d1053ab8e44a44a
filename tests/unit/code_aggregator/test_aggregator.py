from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from code_aggregator import aggregator
from code_aggregator.aggregator import aggregate, process_candidate
from code_aggregator.config import CandidateFile, FileStatus
from code_aggregator.discovery import FilesystemScanSource
from code_aggregator.exceptions import SourceDirectoryError
from code_aggregator.tokens import count_tokens, count_words

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

SCAN = [FilesystemScanSource()]


def write(path: Path, data: str | bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        path.write_bytes(data)
    else:
        path.write_text(data, encoding="utf-8")
    return path


@pytest.mark.unit
def test_process_candidate_statuses(tmp_path: Path) -> None:
    ok = CandidateFile(path=write(tmp_path / "a.py", "x = 1\n"), rel="a.py")
    blank = CandidateFile(path=write(tmp_path / "b.py", "\n\n"), rel="b.py")
    missing = CandidateFile(path=tmp_path / "c.py", rel="c.py")

    processed = process_candidate(0, ok)
    skipped = process_candidate(1, blank)
    failed = process_candidate(2, missing)

    assert processed.status == FileStatus.PROCESSED
    assert processed.tokens == 3  # noqa: PLR2004
    assert processed.fragment.startswith("## File: a.py")
    assert skipped.status == FileStatus.SKIPPED
    assert not skipped.fragment
    assert failed.status == FileStatus.FAILED
    assert "Error processing file" in failed.fragment
    assert failed.tokens == 0


@pytest.mark.unit
def test_sections_follow_candidate_order_not_completion_order(tmp_path: Path, mocker: MockerFixture) -> None:
    for name in ("a", "b", "c"):
        write(tmp_path / f"{name}.txt", f"content {name}\n")
    b_done = threading.Event()
    completion_order: list[str] = []
    real_load = aggregator.load_code_file

    def load_b_first(candidate: CandidateFile, *, encoding_errors: str):  # noqa: ANN202
        if candidate.rel != "b.txt":
            assert b_done.wait(timeout=10)
        code_file = real_load(candidate, encoding_errors=encoding_errors)
        completion_order.append(candidate.rel)
        if candidate.rel == "b.txt":
            b_done.set()
        return code_file

    mocker.patch.object(aggregator, "load_code_file", side_effect=load_b_first)

    result = aggregate(tmp_path, tmp_path / "out", sources=SCAN, max_workers=3)

    assert completion_order[0] == "b.txt"
    positions = [result.content.index(f"## File: {name}.txt") for name in ("a", "b", "c")]
    assert positions == sorted(positions)


@pytest.mark.unit
def test_progress_is_monotonic_and_ends_at_one(tmp_path: Path) -> None:
    for i in range(7):
        write(tmp_path / f"f{i}.txt", f"line {i}\n")
    calls: list[tuple[str, float]] = []

    aggregate(tmp_path, on_progress=lambda name, fraction: calls.append((name, fraction)), sources=SCAN)

    fractions = [fraction for _, fraction in calls]
    assert len(calls) == 7  # noqa: PLR2004
    assert fractions == sorted(fractions)
    assert fractions[-1] == 1.0
    assert {name for name, _ in calls} == {f"f{i}.txt" for i in range(7)}


@pytest.mark.unit
def test_counters_match_emitted_sections(tmp_path: Path) -> None:
    write(tmp_path / "a.txt", "foo, bar!\n")
    write(tmp_path / "b.txt", "one two\n\n")
    write(tmp_path / "empty.txt", "\n   \n")
    write(tmp_path / "bad.bin", b"\xff\xfe\x00abc")

    result = aggregate(tmp_path, sources=SCAN, encoding_errors="strict")

    assert result.files_found == 4  # noqa: PLR2004
    assert result.file_count == 2  # noqa: PLR2004
    assert result.token_count == count_tokens("foo, bar!") + count_tokens("one two")
    assert result.content.count("```txt") == result.file_count
    assert result.skipped == ("empty.txt",)
    assert result.failed == ("bad.bin",)
    assert "## File: empty.txt" not in result.content
    assert "## File: bad.bin\n\n> Error processing file:" in result.content
    assert "Total Files Processed: 2" in result.content


@pytest.mark.unit
def test_alternative_token_counter(tmp_path: Path) -> None:
    write(tmp_path / "a.txt", "foo, bar!\n")

    result = aggregate(tmp_path, sources=SCAN, token_counter=count_words)

    assert result.token_count == 2  # noqa: PLR2004


@pytest.mark.unit
def test_exclude_file_filters_candidates_and_is_not_aggregated(tmp_path: Path) -> None:
    write(tmp_path / ".gitignore", "*.log\nbuild/\n!build/keep.txt\n")
    write(tmp_path / "app.py", "print('hi')\n")
    write(tmp_path / "debug.log", "noise\n")
    write(tmp_path / "build" / "out.txt", "artifact\n")
    write(tmp_path / "build" / "keep.txt", "kept\n")

    result = aggregate(tmp_path, exclude_source=tmp_path / ".gitignore", sources=SCAN)

    assert "## File: app.py" in result.content
    assert "## File: build/keep.txt" in result.content
    assert "debug.log" not in result.content
    assert "build/out.txt" not in result.content
    assert ".gitignore" not in result.content
    assert result.files_found == 2  # noqa: PLR2004


@pytest.mark.unit
def test_previous_reports_are_not_aggregated(tmp_path: Path) -> None:
    write(tmp_path / "app.py", "print('hi')\n")
    write(tmp_path / "aggregated-code" / "old.md", "# Code Aggregation Report\n")

    result = aggregate(tmp_path, tmp_path / "aggregated-code", sources=SCAN)

    assert result.file_count == 1
    assert "old.md" not in result.content


@pytest.mark.unit
def test_empty_tree_gives_header_only(tmp_path: Path) -> None:
    calls: list[tuple[str, float]] = []

    result = aggregate(tmp_path, on_progress=lambda *args: calls.append(args), sources=SCAN)

    assert result.file_count == 0
    assert result.token_count == 0
    assert "Total Files Found: 0" in result.content
    assert "## File:" not in result.content
    assert calls == []


@pytest.mark.unit
def test_missing_source_is_a_run_level_failure(tmp_path: Path) -> None:
    with pytest.raises(SourceDirectoryError) as exc_info:
        aggregate(tmp_path / "missing", sources=SCAN)

    assert exc_info.value.folder == (tmp_path / "missing").resolve()
