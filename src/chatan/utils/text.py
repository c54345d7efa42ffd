"""Text helpers for tokenizing chat messages."""

from __future__ import annotations

import re
from typing import Iterator

# ASCII whitespace as understood by the log format: space, tab, LF, FF, CR.
_TOKEN_RE = re.compile(r"[^ \t\n\f\r]+")


def iter_tokens(text: str) -> Iterator[str]:
    """Yield tokens of ``text`` split on ASCII whitespace."""
    for match in _TOKEN_RE.finditer(text):
        yield match.group()



def capitalized(value: str) -> str:
    """Upper-case the first character only, leaving the rest untouched."""
    if not value:
        return value
    return value[0].upper() + value[1:]


def is_word_candidate(token: str, *, min_len: int = 2, max_len: int = 32) -> bool:
    """Whether ``token`` looks like an emote name: short and ASCII alphanumeric."""
    return min_len <= len(token) <= max_len and token.isascii() and token.isalnum()
