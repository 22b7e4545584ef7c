"""Selection metadata: what a picker shows for each remote document.

Builds ``DisplayMetadata`` from a document and its classification, and
applies search/status/date filters by toggling ``visible``. Only visible,
selected documents are queued by the orchestrator.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from granola_vault.core.timestamps import parse_timestamp
from granola_vault.models import DisplayMetadata, ImportStatus, RemoteDocument, StatusCheck

PREVIEW_LENGTH = 150
NO_CONTENT = "No content available"

_WHITESPACE_RE = re.compile(r"\s+")
_MARKDOWN_NOISE_RE = re.compile(r"[#*`\[\]()]")

SortField = Literal["title", "created", "updated", "word_count", "status"]

_STATUS_ORDER = {
    ImportStatus.NEW: 0,
    ImportStatus.UPDATED: 1,
    ImportStatus.CONFLICT: 2,
    ImportStatus.EXISTS: 3,
}


def _squash(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _prosemirror_text(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    if node.get("text"):
        return str(node["text"])
    return " ".join(_prosemirror_text(child) for child in node.get("content") or ())


def plain_text(doc: RemoteDocument) -> str:
    """Best-effort plain text: ``notes_plain``, then ``notes_markdown``, then the ProseMirror tree."""
    if doc.notes_plain and doc.notes_plain.strip():
        return _squash(doc.notes_plain)
    if doc.notes_markdown and doc.notes_markdown.strip():
        return _squash(_MARKDOWN_NOISE_RE.sub("", doc.notes_markdown))
    return _squash(_prosemirror_text(doc.notes))


def preview_text(doc: RemoteDocument, length: int = PREVIEW_LENGTH) -> str:
    text = plain_text(doc)
    if not text:
        return NO_CONTENT
    return f"{text[:length]}..." if len(text) > length else text


def word_count(doc: RemoteDocument) -> int:
    return len(plain_text(doc).split())


def _clean_title(title: str) -> str:
    title = _squash(title)
    return title[:100] if title else "Untitled Document"


def build_display_metadata(doc: RemoteDocument, status: StatusCheck) -> DisplayMetadata:
    """Documents that are new or have newer remote content start selected."""
    return DisplayMetadata(
        id=doc.id,
        title=_clean_title(doc.title),
        import_status=status,
        created=doc.created_at,
        updated=doc.updated_at,
        preview=preview_text(doc),
        word_count=word_count(doc),
        selected=status.status in (ImportStatus.NEW, ImportStatus.UPDATED),
    )


def build_bulk_metadata(
    documents: Iterable[RemoteDocument],
    statuses: Mapping[str, StatusCheck],
) -> list[DisplayMetadata]:
    fallback = StatusCheck(status=ImportStatus.NEW, reason="Status not determined")
    return [build_display_metadata(doc, statuses.get(doc.id, fallback)) for doc in documents]


@dataclass
class DocumentFilter:
    search_text: str = ""
    statuses: frozenset[ImportStatus] = field(default_factory=frozenset)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    min_word_count: int = 0

    def matches(self, item: DisplayMetadata) -> bool:
        needle = self.search_text.strip().lower()
        if needle and needle not in f"{item.title} {item.preview}".lower():
            return False
        if self.statuses and item.import_status.status not in self.statuses:
            return False
        if self.start or self.end:
            created = parse_timestamp(item.created)
            if created is None:
                return False
            start, end = parse_timestamp(self.start), parse_timestamp(self.end)
            if start and created < start:
                return False
            if end and created > end:
                return False
        return item.word_count >= self.min_word_count


def filter_metadata(items: list[DisplayMetadata], criteria: DocumentFilter) -> list[DisplayMetadata]:
    """Set ``visible`` on every item according to ``criteria``; returns the same list."""
    for item in items:
        item.visible = criteria.matches(item)
    return items


def _sort_key(item: DisplayMetadata, sort_field: SortField) -> Any:
    if sort_field == "title":
        return item.title.lower()
    if sort_field in ("created", "updated"):
        moment = parse_timestamp(getattr(item, sort_field))
        return moment.timestamp() if moment else float("-inf")
    if sort_field == "word_count":
        return item.word_count
    return _STATUS_ORDER[item.import_status.status]


def sort_metadata(
    items: list[DisplayMetadata],
    sort_field: SortField = "updated",
    descending: bool = True,
) -> list[DisplayMetadata]:
    return sorted(items, key=lambda item: _sort_key(item, sort_field), reverse=descending)


def select_ids(items: Iterable[DisplayMetadata], ids: Iterable[str]) -> None:
    """Select exactly ``ids``; everything else is deselected."""
    wanted = set(ids)
    for item in items:
        item.selected = item.id in wanted


@dataclass(frozen=True)
class CollectionStats:
    total: int
    visible: int
    selected: int
    by_status: dict[str, int]
    total_word_count: int


def collection_stats(items: list[DisplayMetadata]) -> CollectionStats:
    return CollectionStats(
        total=len(items),
        visible=sum(1 for item in items if item.visible),
        selected=sum(1 for item in items if item.visible and item.selected),
        by_status=dict(Counter(item.import_status.status.value for item in items)),
        total_word_count=sum(item.word_count for item in items),
    )


__all__ = [
    "DocumentFilter",
    "CollectionStats",
    "build_display_metadata",
    "build_bulk_metadata",
    "filter_metadata",
    "sort_metadata",
    "select_ids",
    "collection_stats",
    "plain_text",
    "preview_text",
    "word_count",
]
