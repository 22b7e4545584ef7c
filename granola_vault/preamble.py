"""Structured preamble (YAML frontmatter) read/write.

The preamble is the integration surface between the converter and the
duplicate index: every imported file carries the remote id, the remote
"updated" timestamp and the ``source`` marker identifying this importer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import frontmatter
import yaml

from granola_vault.core.timestamps import format_timestamp
from granola_vault.errors import ParseError

SOURCE_MARKER = "Granola"

_PREAMBLE_RE = re.compile(r"\A---[ \t]*\r?\n(?P<meta>.*?)^---[ \t]*(?:\r?\n|\Z)", re.S | re.M)


@dataclass(frozen=True)
class ImportedMetadata:
    remote_id: str
    updated: str
    title: str


def split_preamble(text: str) -> tuple[str, str]:
    """Split ``text`` into (raw preamble block, body). The block is "" when absent."""
    match = _PREAMBLE_RE.match(text)
    if not match:
        return "", text
    return match.group(0), text[match.end():]


def body_of(text: str) -> str:
    return split_preamble(text)[1]


def parse_preamble(text: str, *, path: str = "<memory>") -> dict[str, Any] | None:
    """Return the preamble mapping, or None when the text has no preamble.

    Raises:
        ParseError: If a preamble is present but is not valid YAML
    """
    if not _PREAMBLE_RE.match(text):
        return None
    try:
        post = frontmatter.loads(text)
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        raise ParseError(path, str(exc)) from exc
    return dict(post.metadata)


def read_imported_metadata(text: str, *, path: str = "<memory>") -> ImportedMetadata | None:
    """Extract this importer's identity fields, or None for foreign files."""
    metadata = parse_preamble(text, path=path)
    if not metadata or metadata.get("source") != SOURCE_MARKER:
        return None
    remote_id = metadata.get("id")
    updated = metadata.get("updated")
    title = metadata.get("title")
    if remote_id in (None, "") or updated in (None, "") or title is None:
        return None
    return ImportedMetadata(
        remote_id=str(remote_id).strip(),
        updated=format_timestamp(updated),
        title=str(title).strip(),
    )


def compose_document(metadata: dict[str, Any], body: str) -> str:
    post = frontmatter.Post(body, **metadata)
    return frontmatter.dumps(post, sort_keys=False)


__all__ = [
    "SOURCE_MARKER",
    "ImportedMetadata",
    "split_preamble",
    "body_of",
    "parse_preamble",
    "read_imported_metadata",
    "compose_document",
]
