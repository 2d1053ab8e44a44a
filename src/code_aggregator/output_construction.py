from __future__ import annotations

import io
from typing import TYPE_CHECKING

from code_aggregator.config import REPORT_TITLE

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from code_aggregator.config import CodeFile


def format_code_file(code_file: CodeFile) -> str:
    """Render one file as a Markdown section.

    The section is a level-2 heading naming the relative path and a fenced
    block tagged with the file extension, followed by a blank line. Fences
    inside the content are not escaped.

    Args:
        code_file (CodeFile): the cleaned file

    Returns:
        str: the Markdown section
    """
    return f"## File: {code_file.rel}\n\n```{code_file.extension}\n{code_file.content}\n```\n\n"


def format_error(rel: str, error: str) -> str:
    """Render the section that stands in for a file that could not be read."""
    return f"## File: {rel}\n\n> Error processing file: {error}\n\n"


def build_report_header(
    source: Path | str,
    *,
    files_found: int,
    files_processed: int,
    token_count: int,
) -> str:
    """Build the summary block that opens the report.

    Args:
        source (Path | str): the aggregated source directory
        files_found (int): candidates left after discovery and exclusion
        files_processed (int): files that contributed a section
        token_count (int): total tokens over those files

    Returns:
        str: the header, ending with a blank line
    """
    out = io.StringIO()
    out.write(f"{REPORT_TITLE}\n")
    out.write(f"Source Directory: {source}\n")
    out.write(f"Total Files Found: {files_found}\n")
    out.write(f"Total Files Processed: {files_processed}\n")
    out.write(f"Total Tokens: {token_count}\n\n")
    return out.getvalue()


def assemble_document(header: str, fragments: Iterable[str]) -> str:
    out = io.StringIO()
    out.write(header)
    for fragment in fragments:
        out.write(fragment)
    return out.getvalue()
