"""Gitignore-style exclusion patterns.

One pattern line compiles into a `Pattern` holding a case-insensitive regular
expression over POSIX relative paths. A `PatternSet` keeps the patterns of one
exclude file in order; `should_exclude` walks it and lets the last matching
pattern decide, so a `!negated` line re-includes what an earlier line excluded
and a later plain line excludes it again.

Supported dialect:
    - leading `/` anchors the pattern to the root, otherwise it matches at any depth;
    - trailing `/` matches the directory and everything below it;
    - `*` and `?` never cross a `/`, `**/` spans zero or more directories,
      a trailing `/**` matches everything below;
    - `[...]` classes (with `!`/`^` negation and ranges) ignore case;
    - a name without a trailing slash also excludes everything below a
      directory of that name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING

from code_aggregator.config import VCS_METADATA_PATTERNS
from code_aggregator.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

_ANY_DEPTH = "(?:.*/)?"
_SEGMENT_CHARS = "[^/]*"


@dataclass(frozen=True)
class Pattern:
    """A compiled exclusion (or, when negated, inclusion) rule."""

    raw: str
    negated: bool
    anchored: bool
    directory_only: bool
    regex: re.Pattern[str] = field(repr=False, compare=False)

    def matches(self, path: str) -> bool:
        """Tell whether a normalized relative path (POSIX, no leading `/`) matches."""
        return self.regex.fullmatch(path) is not None


@dataclass(frozen=True)
class PatternSet:
    """Ordered patterns of one exclude source. Later patterns take precedence."""

    patterns: tuple[Pattern, ...] = ()
    source: Path | None = None

    @classmethod
    def empty(cls, source: Path | None = None) -> PatternSet:
        return cls((), source)

    @classmethod
    def from_lines(cls, lines: Iterable[str], source: Path | None = None) -> PatternSet:
        """Compile already-filtered pattern lines, keeping their order."""
        return cls(tuple(compile_pattern(line) for line in lines), source)

    def __iter__(self) -> Iterator[Pattern]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)


def _char_class(content: str) -> str:
    """Translate the inside of a `[...]` bracket expression, both cases for letters.

    A negated class never matches `/`, the same as `?` and `*`.
    """
    negate = content[0] in "!^"
    if negate:
        content = content[1:]
    parts = ["[^/" if negate else "["]
    i = 0
    while i < len(content):
        ch = content[i]
        if i + 2 < len(content) and content[i + 1] == "-":
            lo, hi = ch, content[i + 2]
            parts.append(f"{re.escape(lo)}-{re.escape(hi)}")
            if lo.isalpha() and hi.isalpha():
                parts.append(f"{lo.lower()}-{hi.lower()}{lo.upper()}-{hi.upper()}")
            i += 3
            continue
        parts.append(ch.lower() + ch.upper() if ch.isalpha() else re.escape(ch))
        i += 1
    parts.append("]")
    return "".join(parts)


def _translate(body: str) -> str:
    out: list[str] = []
    i, n = 0, len(body)
    while i < n:
        c = body[i]
        if c == "*" and i + 1 < n and body[i + 1] == "*":
            segment_start = i == 0 or body[i - 1] == "/"
            if segment_start and i + 2 < n and body[i + 2] == "/":
                out.append(_ANY_DEPTH)
                i += 3
                continue
            if segment_start and i + 2 == n:
                out.append(".*")
                i += 2
                continue
            out.append(_SEGMENT_CHARS)
            i += 2
            continue
        if c == "*":
            out.append(_SEGMENT_CHARS)
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            close = body.find("]", i + 1)
            content = body[i + 1 : close] if close != -1 else ""
            if close == -1 or content in {"", "!", "^"}:
                out.append(re.escape(c))
            else:
                out.append(_char_class(content))
                i = close
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@lru_cache(maxsize=4096)
def compile_pattern(line: str) -> Pattern:
    """Compile one exclude-file line into a `Pattern`.

    Never raises: a bracket expression without its closing `]` is read as a
    literal `[`, and a translation that `re` still rejects degrades to a plain
    literal match of the pattern text.

    Args:
        line (str): a trimmed, non-empty line that is not a comment

    Returns:
        Pattern: the compiled pattern
    """
    raw = line
    negated = line.startswith("!")
    body = line[1:] if negated else line
    body = body.replace("\\", "/")
    anchored = body.startswith("/")
    if anchored:
        body = body.lstrip("/")
    directory_only = body.endswith("/")

    prefix = "" if anchored else _ANY_DEPTH
    suffix = ".*" if directory_only else "(?:/.*)?"
    try:
        regex = re.compile(prefix + _translate(body) + suffix, re.IGNORECASE)
    except re.error as exc:
        logger.warning("pattern_degraded_to_literal", pattern=raw, error=str(exc))
        regex = re.compile(prefix + re.escape(body) + suffix, re.IGNORECASE)
    logger.debug("pattern_compiled", pattern=raw, regex=regex.pattern)
    return Pattern(raw=raw, negated=negated, anchored=anchored, directory_only=directory_only, regex=regex)


_VCS_METADATA = tuple(compile_pattern(p) for p in VCS_METADATA_PATTERNS)


def normalize_relative_path(path: str) -> str:
    """Use POSIX separators and drop leading slashes."""
    return path.replace("\\", "/").lstrip("/")


def should_exclude(relative_path: str, patterns: Iterable[Pattern]) -> bool:
    """Decide whether a path relative to the source root is excluded.

    VCS metadata (`.git` at any depth) is always excluded. Otherwise every
    pattern is consulted in order and each match sets the verdict to
    `not pattern.negated`: the last matching pattern wins.

    Args:
        relative_path (str): path relative to the source root
        patterns (Iterable[Pattern]): the ordered patterns, usually a `PatternSet`

    Returns:
        bool: True if the path must be left out of the aggregation
    """
    path = normalize_relative_path(relative_path)
    if any(p.matches(path) for p in _VCS_METADATA):
        logger.debug("path_excluded_vcs_metadata", path=path)
        return True

    excluded = False
    for pattern in patterns:
        if pattern.matches(path):
            excluded = not pattern.negated
            logger.debug("pattern_matched", path=path, pattern=pattern.raw, excluded=excluded)
    return excluded


def parse_exclude_lines(text: str) -> list[str]:
    """Extract the pattern lines of an exclude file: no blanks, no `#` comments, trimmed."""
    out: list[str] = []
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        out.append(stripped)
    return out


def load_exclude_file(path: Path | None) -> PatternSet:
    """Read and compile an exclude file.

    A missing or unreadable file yields an empty `PatternSet`, which still
    hides VCS metadata through `should_exclude`.

    Args:
        path (Path | None): the exclude file, or None

    Returns:
        PatternSet: the compiled patterns in file order
    """
    if path is None or not path.is_file():
        logger.info("exclude_file_not_found", path=str(path) if path else None)
        return PatternSet.empty(path)
    try:
        text = path.read_text(encoding="utf-8-sig", errors="replace")
    except OSError as exc:
        logger.warning("exclude_file_unreadable", path=str(path), error=str(exc))
        return PatternSet.empty(path)
    lines = parse_exclude_lines(text)
    logger.info("patterns_parsed", count=len(lines), path=str(path))
    return PatternSet.from_lines(lines, source=path)
