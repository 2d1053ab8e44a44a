from __future__ import annotations

from pathlib import Path

import pytest

from code_aggregator import cli
from code_aggregator.aggregator import aggregate
from code_aggregator.discovery import FilesystemScanSource


def make_project(root: Path) -> None:
    (root / "src").mkdir(parents=True, exist_ok=True)
    (root / "src" / "main.txt").write_text("hello\n\nworld\n", encoding="utf-8")
    (root / ".gitignore").write_text("*.log", encoding="utf-8")


def test_end_to_end_aggregate(tmp_path: Path) -> None:
    make_project(tmp_path)
    progress: list[float] = []

    result = aggregate(
        tmp_path,
        tmp_path / "aggregated-code",
        tmp_path / ".gitignore",
        lambda _name, fraction: progress.append(fraction),
        sources=[FilesystemScanSource()],
    )

    assert result.file_count == 1
    assert result.token_count == 2  # noqa: PLR2004
    assert "Total Files Found: 1" in result.content
    assert "## File: src/main.txt\n\n```txt\nhello\nworld\n```\n" in result.content
    assert progress == [1.0]


def test_end_to_end_cli_writes_report(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    make_project(tmp_path)
    (tmp_path / "trace.log").write_text("ignored\n", encoding="utf-8")

    exit_code = cli.main([str(tmp_path), "--no-git"])

    assert exit_code == 0
    reports = list((tmp_path / "aggregated-code").glob("*.md"))
    assert len(reports) == 1
    text = reports[0].read_text(encoding="utf-8")
    assert text.startswith("# Code Aggregation Report\n")
    assert "Total Files Found: 1" in text
    assert "Total Tokens: 2" in text
    assert "trace.log" not in text
    captured = capsys.readouterr()
    assert "Total tokens: 2" in captured.out
    assert "100.0%" in captured.err

    assert cli.main([str(tmp_path), "--no-git", "--quiet"]) == 0
    reports = sorted((tmp_path / "aggregated-code").glob("*.md"))
    assert len(reports) == 2  # noqa: PLR2004
    assert all("Total Files Found: 1" in r.read_text(encoding="utf-8") for r in reports)
