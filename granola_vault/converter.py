"""Remote document → Markdown note conversion.

The orchestrator treats the converter as a pure function: the same document
always yields the same ``ConvertedNote`` and nothing is written anywhere.
"""

from __future__ import annotations

import html
from typing import Any, Protocol, runtime_checkable

from granola_vault.core.log import get_logger
from granola_vault.core.timestamps import format_timestamp
from granola_vault.models import ConvertedNote, RemoteDocument
from granola_vault.naming import FilenamePolicy, display_title
from granola_vault.preamble import SOURCE_MARKER, compose_document
from granola_vault.rendering import html_to_markdown, prosemirror_to_markdown

logger = get_logger(__name__)


@runtime_checkable
class Converter(Protocol):
    """Pure function from a remote document to a note."""

    def convert(self, doc: RemoteDocument) -> ConvertedNote:
        ...


def _panel_markdown(doc: RemoteDocument) -> str:
    panel = doc.last_viewed_panel
    if panel is None or panel.content is None:
        return ""
    if isinstance(panel.content, dict):
        return prosemirror_to_markdown(panel.content)
    return html_to_markdown(panel.content)


def _content_candidates(doc: RemoteDocument) -> list[tuple[str, Any]]:
    # Ordered by reliability.
    return [
        ("last_viewed_panel", lambda: _panel_markdown(doc)),
        ("notes", lambda: prosemirror_to_markdown(doc.notes)),
        ("notes_markdown", lambda: html.unescape((doc.notes_markdown or "").strip())),
        ("notes_plain", lambda: html.unescape((doc.notes_plain or "").strip())),
    ]


def extract_markdown(doc: RemoteDocument) -> tuple[str, str | None]:
    """Return (markdown, source field) from the most reliable non-empty content field."""
    for source, render in _content_candidates(doc):
        markdown = render()
        if markdown.strip():
            return markdown.strip(), source
    return "", None


def is_empty_document(doc: RemoteDocument) -> bool:
    """True when no content field carries anything meaningful."""
    return extract_markdown(doc)[1] is None


def build_frontmatter(doc: RemoteDocument) -> dict[str, Any]:
    return {
        "id": doc.id,
        "title": display_title(doc),
        "created": format_timestamp(doc.created_at),
        "updated": format_timestamp(doc.updated_at),
        "source": SOURCE_MARKER,
    }


def _placeholder(doc: RemoteDocument) -> str:
    return (
        f"# {display_title(doc)}\n\n"
        "*This document has no extractable content.*\n\n"
        f"*Document ID: {doc.id}*"
    )


class MarkdownConverter:
    """Default converter: YAML preamble plus a Markdown body."""

    def __init__(self, policy: FilenamePolicy | None = None) -> None:
        self.policy = policy or FilenamePolicy()

    def convert(self, doc: RemoteDocument) -> ConvertedNote:
        markdown, source = extract_markdown(doc)
        if source is None:
            logger.warning("document_has_no_content", document_id=doc.id, title=doc.title)
            markdown = _placeholder(doc)
        else:
            logger.debug("document_content_source", document_id=doc.id, source=source)

        metadata = build_frontmatter(doc)
        return ConvertedNote(
            filename=self.policy.filename(doc),
            content=compose_document(metadata, markdown),
            frontmatter=metadata,
            is_empty=source is None,
        )


__all__ = [
    "Converter",
    "MarkdownConverter",
    "build_frontmatter",
    "extract_markdown",
    "is_empty_document",
]
