"""Candidate file discovery.

Two sources produce the raw file list: `git ls-files`, which knows what the
repository tracks, and a filesystem walk used whenever git is disabled, absent
or fails. Whichever answers first is used; the walk always answers for a
readable directory.
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from code_aggregator.config import DEFAULT_IGNORED_SEGMENTS
from code_aggregator.exceptions import GitCommandError, SourceDirectoryError
from code_aggregator.loader import relpath
from code_aggregator.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    Runner = Callable[..., subprocess.CompletedProcess[str]]


class TrackedFileSource(Protocol):
    """Anything able to list the files of a source tree."""

    name: str

    def list_files(self, root: Path) -> list[Path]:
        """Return absolute paths of the files under `root`."""
        ...


@dataclass(frozen=True)
class GitTrackedFileSource:
    """List the files git tracks below `root`.

    Paths are relative to the working directory (no `--full-name`), so a
    subdirectory of a repository works as a source root. Names are read
    NUL-separated (`-z`), unquoted and unstripped.
    """

    name: str = "git"
    runner: Runner = subprocess.run

    def list_files(self, root: Path) -> list[Path]:
        """Run `git ls-files` in `root`.

        Raises:
            GitCommandError: if git exits with a non-zero status.
            FileNotFoundError: if no git executable is available.
        """
        cmd = ["git", "ls-files", "-z"]
        out = self.runner(
            cmd,
            cwd=str(root),
            text=True,
            encoding="utf-8",
            capture_output=True,
            check=False,
        )
        if out.returncode != 0:
            raise GitCommandError(
                command=" ".join(cmd),
                returncode=out.returncode,
                stdout=out.stdout or "",
                stderr=out.stderr or "",
            )
        if out.stderr:
            logger.debug("git_stderr", stderr=out.stderr.strip())
        return [root / name for name in out.stdout.split("\0") if name]


def _log_walk_error(exc: OSError) -> None:
    logger.warning("directory_unreadable", path=exc.filename, error=exc.strerror or str(exc))


@dataclass(frozen=True)
class FilesystemScanSource:
    """Walk the tree, pruning infrastructure directories (VCS, IDE, build output)."""

    name: str = "filesystem"
    ignored_segments: tuple[str, ...] = DEFAULT_IGNORED_SEGMENTS

    def list_files(self, root: Path) -> list[Path]:
        ignored = {s.lower() for s in self.ignored_segments}
        results: list[Path] = []
        for dirpath, dirs, files in os.walk(root, onerror=_log_walk_error):
            dirs[:] = [d for d in dirs if d.lower() not in ignored]
            results.extend(Path(dirpath) / f for f in files)
        return results


def default_sources(*, use_git: bool = True) -> list[TrackedFileSource]:
    """Git first when allowed, the filesystem walk otherwise."""
    sources: list[TrackedFileSource] = [FilesystemScanSource()]
    if use_git:
        sources.insert(0, GitTrackedFileSource())
    return sources


def check_source_directory(root: Path) -> None:
    """Make sure `root` is a directory that can be listed.

    Raises:
        SourceDirectoryError: otherwise.
    """
    if not root.is_dir():
        raise SourceDirectoryError(folder=root)
    try:
        with os.scandir(root):
            pass
    except OSError as exc:
        raise SourceDirectoryError(
            folder=root,
            message=f"The source directory cannot be listed: {exc.strerror or exc}",
        ) from exc


def _first_listing(root: Path, sources: Iterable[TrackedFileSource]) -> list[Path]:
    for source in sources:
        try:
            files = source.list_files(root)
        except (GitCommandError, OSError) as exc:
            logger.warning("file_source_failed", source=source.name, error=str(exc))
            continue
        logger.info("file_source_selected", source=source.name, count=len(files))
        return files
    logger.info("file_source_fallback", source="filesystem")
    return FilesystemScanSource().list_files(root)


def discover_files(
    root: Path,
    output_dir: Path | None = None,
    *,
    sources: Sequence[TrackedFileSource] | None = None,
) -> list[Path]:
    """Collect the candidate files of a source tree.

    Args:
        root (Path): the source directory
        output_dir (Path | None): files under this directory are never candidates
        sources (Sequence[TrackedFileSource] | None): sources tried in order;
            defaults to git then the filesystem walk

    Raises:
        SourceDirectoryError: if `root` is missing or unreadable.

    Returns:
        list[Path]: absolute paths of regular files, deduplicated and sorted
            by case-insensitive relative path
    """
    root = root.resolve()
    check_source_directory(root)
    out_dir = output_dir.resolve() if output_dir is not None else None

    listed = _first_listing(root, default_sources() if sources is None else sources)

    seen: set[Path] = set()
    files: list[Path] = []
    for path in listed:
        if path in seen:
            continue
        seen.add(path)
        if out_dir is not None and path.is_relative_to(out_dir):
            continue
        if not path.is_file():
            logger.debug("candidate_not_a_file", path=str(path))
            continue
        files.append(path)
    return sorted(files, key=lambda p: relpath(p, root).lower())
