"""Decides which filesystem changes should trigger a rebuild."""

from __future__ import annotations

import re

# Component source, stylesheets (plain and Sass family), scripts, typed scripts
SOURCE_SUFFIXES = frozenset({".svelte", ".css", ".scss", ".sass", ".js", ".ts"})

_SEPARATORS = re.compile(r"[\\/]")


def is_hidden(path: str) -> bool:
    """True if any segment of ``path`` starts with a dot.

    Both separator styles are recognised, so editor swap and backup files are
    skipped whatever the watch backend reports.
    """
    return any(part.startswith(".") and part not in (".", "..") for part in _SEPARATORS.split(path))


def is_relevant(path: str | None) -> bool:
    """True if a change to ``path`` should trigger a rebuild."""
    if not path:
        return False
    if is_hidden(path):
        return False
    name = _SEPARATORS.split(path)[-1]
    dot = name.rfind(".")
    if dot <= 0:
        return False
    return name[dot:] in SOURCE_SUFFIXES
