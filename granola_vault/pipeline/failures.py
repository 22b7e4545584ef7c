"""Registry of documents whose last import attempt failed.

Records keep everything needed to try again without re-fetching: the
remote document, its display metadata (including the classification it
was imported under) and the error message.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

from granola_vault.core.timestamps import utc_now
from granola_vault.models import DisplayMetadata, RemoteDocument


@dataclass(frozen=True)
class FailureRecord:
    document: RemoteDocument
    metadata: DisplayMetadata
    error: str
    timestamp: datetime = field(default_factory=utc_now)


class FailureRegistry:
    """Failures keyed by document id, in first-failure order."""

    def __init__(self) -> None:
        self._records: dict[str, FailureRecord] = {}

    def record(self, document: RemoteDocument, metadata: DisplayMetadata, error: str) -> FailureRecord:
        entry = FailureRecord(document=document, metadata=metadata, error=error)
        self._records[document.id] = entry
        return entry

    def discard(self, document_id: str) -> None:
        self._records.pop(document_id, None)

    def get(self, document_id: str) -> FailureRecord | None:
        return self._records.get(document_id)

    def records(self) -> list[FailureRecord]:
        return list(self._records.values())

    def clear(self) -> None:
        self._records.clear()

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[FailureRecord]:
        return iter(list(self._records.values()))


__all__ = ["FailureRecord", "FailureRegistry"]
