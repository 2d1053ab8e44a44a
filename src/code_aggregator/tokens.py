from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    TokenCounter = Callable[[str], int]

_TOKEN_RE = re.compile(r"\w+|[^\w\s]")


def count_tokens(text: str) -> int:
    """Estimate the token count of a text.

    Every run of word characters is one token and every other non-space
    character is a token on its own: `"foo, bar!"` counts 4.

    Args:
        text (str): the text to measure

    Returns:
        int: the number of tokens
    """
    return sum(1 for _ in _TOKEN_RE.finditer(text))


def count_words(text: str) -> int:
    """Count whitespace-separated words, a cruder estimate than `count_tokens`."""
    return len(text.split())


TOKEN_COUNTERS: dict[str, TokenCounter] = {
    "regex": count_tokens,
    "whitespace": count_words,
}


def get_token_counter(name: str) -> TokenCounter:
    """Look up a token counter by its settings name.

    Raises:
        ValueError: if no counter is registered under `name`.
    """
    try:
        return TOKEN_COUNTERS[name]
    except KeyError:
        msg = f"Unknown token counter {name!r}, expected one of {sorted(TOKEN_COUNTERS)}"
        raise ValueError(msg) from None
