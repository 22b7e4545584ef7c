"""Duplicate detection: classify remote documents against the vault."""

from granola_vault.dedup.heuristics import DEFAULT_HEURISTICS, ModificationHeuristic, detect_local_modifications
from granola_vault.dedup.index import DuplicateIndex, IndexStatistics

__all__ = [
    "DEFAULT_HEURISTICS",
    "ModificationHeuristic",
    "detect_local_modifications",
    "DuplicateIndex",
    "IndexStatistics",
]
