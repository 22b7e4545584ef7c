"""Heuristics for "this imported file was edited by hand".

The converter never emits vault-specific syntax (wikilinks, tags, callouts,
block ids, ...) and produces notes of modest size. Any of those appearing in
an imported file's body means a human has been there, so the index must not
silently overwrite it.

Each heuristic is a named predicate over the body (preamble excluded); add
new ones to ``DEFAULT_HEURISTICS`` or pass a custom tuple to the index.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

OVERSIZE_WORD_LIMIT = 2000


@dataclass(frozen=True)
class ModificationHeuristic:
    name: str
    test: Callable[[str], bool]

    def __call__(self, body: str) -> bool:
        return self.test(body)


def pattern_heuristic(name: str, pattern: str, flags: int = 0) -> ModificationHeuristic:
    compiled = re.compile(pattern, flags)
    return ModificationHeuristic(name, lambda body: compiled.search(body) is not None)


def is_oversized(body: str, limit: int = OVERSIZE_WORD_LIMIT) -> bool:
    return len(body.split()) > limit


WIKILINK = pattern_heuristic("wikilink", r"(?<!!)\[\[[^\]\n]+\]\]")
EMBED = pattern_heuristic("embed", r"!\[\[[^\]\n]+\]\]")
# "#tag" preceded by whitespace or line start; headings ("# Title") have a space after the hash.
INLINE_TAG = pattern_heuristic("inline_tag", r"(?:^|(?<=\s))#[A-Za-z][\w/-]*", re.M)
COMMENT = pattern_heuristic("comment", r"%%.*?%%", re.S)
DATAVIEW = pattern_heuristic("dataview", r"```dataview")
BLOCK_REFERENCE = pattern_heuristic("block_reference", r"\s\^[A-Za-z0-9-]+$", re.M)
CALLOUT = pattern_heuristic("callout", r"^\s*>\s*\[![^\]]*\]", re.M)
OVERSIZE = ModificationHeuristic("oversize", is_oversized)

DEFAULT_HEURISTICS: tuple[ModificationHeuristic, ...] = (
    WIKILINK,
    EMBED,
    INLINE_TAG,
    COMMENT,
    DATAVIEW,
    BLOCK_REFERENCE,
    CALLOUT,
    OVERSIZE,
)


def detect_local_modifications(
    body: str,
    heuristics: Iterable[ModificationHeuristic] = DEFAULT_HEURISTICS,
) -> tuple[str, ...]:
    """Names of every heuristic that fires for ``body``; empty when it looks untouched."""
    return tuple(heuristic.name for heuristic in heuristics if heuristic(body))


__all__ = [
    "ModificationHeuristic",
    "pattern_heuristic",
    "is_oversized",
    "DEFAULT_HEURISTICS",
    "detect_local_modifications",
]
