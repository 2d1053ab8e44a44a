from __future__ import annotations

from typing import TYPE_CHECKING

from code_aggregator.config import CandidateFile, CodeFile
from code_aggregator.exceptions import FileProcessingError

if TYPE_CHECKING:
    from pathlib import Path


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path).replace("\\", "/")


def clean_content(text: str) -> str:
    """Drop whitespace-only lines and join the rest with `\\n`.

    Cleaning clean text returns it unchanged.

    Args:
        text (str): raw file content

    Returns:
        str: the non-blank lines, carriage returns removed from their ends
    """
    lines = (line.rstrip("\r") for line in text.split("\n"))
    return "\n".join(line for line in lines if line.strip())


def read_text(path: Path, encoding_errors: str = "replace") -> str:
    """Read a file as UTF-8 text.

    Raises:
        FileProcessingError: if the file cannot be read, or cannot be decoded
            when `encoding_errors` is "strict".
    """
    try:
        return path.read_text(encoding="utf-8", errors=encoding_errors)
    except UnicodeDecodeError as exc:
        raise FileProcessingError(path=path, reason=f"cannot decode as UTF-8: {exc.reason}") from exc
    except OSError as exc:
        raise FileProcessingError(path=path, reason=exc.strerror or str(exc)) from exc


def load_code_file(candidate: CandidateFile, *, encoding_errors: str = "replace") -> CodeFile | None:
    """Read and clean one candidate.

    Args:
        candidate (CandidateFile): the file to load
        encoding_errors (str): error handler passed to the UTF-8 decoder

    Raises:
        FileProcessingError: on read or decode failure.

    Returns:
        CodeFile | None: the cleaned file, or None when nothing but blank
            lines was left (the file is skipped)
    """
    content = clean_content(read_text(candidate.path, encoding_errors))
    if not content:
        return None
    return CodeFile(rel=candidate.rel, content=content)
