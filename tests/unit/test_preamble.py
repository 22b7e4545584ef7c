"""Tests for preamble parsing and composition."""
from __future__ import annotations

import pytest

from granola_vault.errors import ParseError
from granola_vault.preamble import (
    ImportedMetadata,
    body_of,
    compose_document,
    parse_preamble,
    read_imported_metadata,
    split_preamble,
)
from tests.helpers import imported_note


def test_compose_then_read_identity_fields():
    content = imported_note("doc-1", "Weekly Sync", updated="2024-01-15T11:00:00Z")
    assert read_imported_metadata(content) == ImportedMetadata(
        remote_id="doc-1",
        updated="2024-01-15T11:00:00Z",
        title="Weekly Sync",
    )


def test_compose_keeps_field_order():
    content = compose_document({"id": "x", "title": "T", "source": "Granola"}, "Body")
    head = content.split("---")[1]
    assert head.index("id:") < head.index("title:") < head.index("source:")
    assert content.rstrip().endswith("Body")


def test_foreign_source_is_ignored():
    assert read_imported_metadata(imported_note("doc-1", source="Other")) is None


def test_missing_identity_field_is_ignored():
    content = compose_document({"id": "doc-1", "source": "Granola"}, "Body")
    assert read_imported_metadata(content) is None


def test_no_preamble():
    assert parse_preamble("# Just a note\n") is None
    assert split_preamble("# Just a note\n") == ("", "# Just a note\n")


def test_invalid_yaml_raises_parse_error():
    with pytest.raises(ParseError) as excinfo:
        parse_preamble("---\nid: [unclosed\n---\nBody\n", path="broken.md")
    assert excinfo.value.path == "broken.md"


def test_split_preamble_separates_block_and_body():
    block, body = split_preamble("---\nid: 1\n---\nHello\n")
    assert block == "---\nid: 1\n---\n"
    assert body == "Hello\n"
    assert body_of("---\nid: 1\n---\nHello\n") == "Hello\n"
