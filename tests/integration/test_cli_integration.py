from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from code_aggregator import cli
from code_aggregator.discovery import FilesystemScanSource, GitTrackedFileSource

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.integration
def test_main_uses_git_ls_files_when_available(
    tmp_path: Path,
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    tracked = tmp_path / "src" / "app.py"
    untracked = tmp_path / "scratch.py"
    tracked.parent.mkdir(parents=True, exist_ok=True)
    tracked.write_text("print('hi')\n", encoding="utf-8")
    untracked.write_text("print('draft')\n", encoding="utf-8")

    mocker.patch.object(GitTrackedFileSource, "list_files", return_value=[tracked.resolve()])
    walk = mocker.patch.object(FilesystemScanSource, "list_files", return_value=[])
    output_dir = tmp_path / "reports"

    exit_code = cli.main([str(tmp_path), "--output-dir", str(output_dir), "--quiet"])

    assert exit_code == 0
    walk.assert_not_called()
    reports = list(output_dir.glob("*.md"))
    assert len(reports) == 1
    text = reports[0].read_text(encoding="utf-8")
    assert "## File: src/app.py" in text
    assert "scratch.py" not in text
    assert "Total files processed: 1" in capsys.readouterr().out


@pytest.mark.integration
def test_main_falls_back_to_walk_when_git_fails(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / "app.py").write_text("x = 1\n", encoding="utf-8")
    mocker.patch.object(GitTrackedFileSource, "list_files", side_effect=FileNotFoundError("git"))

    exit_code = cli.main([str(tmp_path), "--quiet"])

    assert exit_code == 0
    reports = list((tmp_path / "aggregated-code").glob("*.md"))
    assert len(reports) == 1
    assert "## File: app.py" in reports[0].read_text(encoding="utf-8")


@pytest.mark.integration
def test_main_reports_missing_source(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main([str(tmp_path / "missing"), "--no-git", "--quiet"])

    assert exit_code == 1
    assert "Error:" in capsys.readouterr().err
