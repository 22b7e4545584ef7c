"""Tests for selection metadata."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from granola_vault.metadata import (
    NO_CONTENT,
    DocumentFilter,
    build_bulk_metadata,
    build_display_metadata,
    collection_stats,
    filter_metadata,
    select_ids,
    sort_metadata,
)
from granola_vault.models import ImportStatus, StatusCheck
from tests.helpers import make_document


def _status(status: ImportStatus) -> StatusCheck:
    return StatusCheck(status=status, reason="test")


@pytest.mark.parametrize(
    "status,selected",
    [
        (ImportStatus.NEW, True),
        (ImportStatus.UPDATED, True),
        (ImportStatus.EXISTS, False),
        (ImportStatus.CONFLICT, False),
    ],
)
def test_default_selection_follows_status(status, selected):
    assert build_display_metadata(make_document(), _status(status)).selected is selected


def test_preview_and_word_count():
    doc = make_document(notes_plain="one two   three " * 60, notes_markdown=None)
    item = build_display_metadata(doc, _status(ImportStatus.NEW))
    assert item.word_count == 180
    assert item.preview.endswith("...")
    assert len(item.preview) == 153


def test_preview_without_content():
    item = build_display_metadata(make_document(notes_markdown=None), _status(ImportStatus.NEW))
    assert item.preview == NO_CONTENT
    assert item.word_count == 0


def test_bulk_metadata_defaults_missing_status_to_new():
    items = build_bulk_metadata([make_document("a"), make_document("b")], {"a": _status(ImportStatus.EXISTS)})
    assert [item.import_status.status for item in items] == [ImportStatus.EXISTS, ImportStatus.NEW]


class TestFilter:
    def _items(self):
        return [
            build_display_metadata(make_document("a", "Roadmap review"), _status(ImportStatus.NEW)),
            build_display_metadata(
                make_document("b", "Hiring", created_at="2023-06-01T00:00:00Z"), _status(ImportStatus.EXISTS)
            ),
        ]

    def test_search_text_matches_title_and_preview(self):
        items = filter_metadata(self._items(), DocumentFilter(search_text="ROADMAP"))
        assert [item.visible for item in items] == [True, True]  # both previews mention the roadmap
        items = filter_metadata(self._items(), DocumentFilter(search_text="hiring"))
        assert [item.visible for item in items] == [False, True]

    def test_status_filter(self):
        items = filter_metadata(self._items(), DocumentFilter(statuses=frozenset({ImportStatus.EXISTS})))
        assert [item.id for item in items if item.visible] == ["b"]

    def test_date_range_accepts_naive_bounds(self):
        criteria = DocumentFilter(start=datetime(2024, 1, 1))
        items = filter_metadata(self._items(), criteria)
        assert [item.id for item in items if item.visible] == ["a"]

    def test_end_bound(self):
        criteria = DocumentFilter(end=datetime(2023, 12, 31, tzinfo=timezone.utc))
        items = filter_metadata(self._items(), criteria)
        assert [item.id for item in items if item.visible] == ["b"]


def test_sort_and_select_and_stats():
    items = [
        build_display_metadata(make_document("a", "Beta", updated_at="2024-02-01T00:00:00Z"), _status(ImportStatus.NEW)),
        build_display_metadata(make_document("b", "alpha", updated_at="2024-03-01T00:00:00Z"), _status(ImportStatus.EXISTS)),
    ]
    assert [item.id for item in sort_metadata(items)] == ["b", "a"]
    assert [item.id for item in sort_metadata(items, "title", descending=False)] == ["b", "a"]

    select_ids(items, ["b"])
    stats = collection_stats(items)
    assert stats.selected == 1
    assert stats.by_status == {"NEW": 1, "EXISTS": 1}
