from __future__ import annotations

import re
from collections.abc import Iterable

"""Identifier sanitization for the query engine.

Sanitized names are lowercase [a-z0-9_], at most 64 characters, and derived
only from the input text, so the same label always yields the same name.
Collisions are resolved by `dedupe_names` with numeric suffixes in order of
appearance.
"""

__all__ = [
    "MAX_IDENTIFIER_LENGTH",
    "sanitize_column_name",
    "sanitize_table_name",
    "dedupe_names",
]

MAX_IDENTIFIER_LENGTH = 64

_INVALID = re.compile(r"[^a-z0-9_]")
_UNDERSCORES = re.compile(r"_+")


def _sanitize(name: str) -> str:
    s = _INVALID.sub("_", name.lower())
    s = _UNDERSCORES.sub("_", s).strip("_")
    return s


def sanitize_column_name(name: str) -> str:
    """'Q1 Budget ($)' -> 'q1_budget'. May return '' for symbol-only labels."""
    return _sanitize(str(name))[:MAX_IDENTIFIER_LENGTH].rstrip("_")


def sanitize_table_name(name: str) -> str:
    """Like column names, plus a '_' prefix when the name starts with a digit."""
    s = _sanitize(str(name))
    if s and s[0].isdigit():
        s = f"_{s}"
    s = s[:MAX_IDENTIFIER_LENGTH].rstrip("_")
    return s or "sheet"


def dedupe_names(names: Iterable[str], fallback_prefix: str = "column") -> list[str]:
    """Make sanitized names unique: repeats get _2, _3 ... in order of appearance.

    Empty names become '<fallback_prefix>_<position>' (1-based). Suffixed names
    are truncated so they stay within MAX_IDENTIFIER_LENGTH.
    """
    result: list[str] = []
    seen: set[str] = set()
    for position, name in enumerate(names, start=1):
        base = name or f"{fallback_prefix}_{position}"
        candidate = base
        n = 2
        while candidate in seen:
            suffix = f"_{n}"
            candidate = base[: MAX_IDENTIFIER_LENGTH - len(suffix)] + suffix
            n += 1
        seen.add(candidate)
        result.append(candidate)
    return result
