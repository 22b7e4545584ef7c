"""Filename derivation shared by the converter and the duplicate index.

The index must predict exactly the names the converter produces, so both
go through one ``FilenamePolicy``.
"""

from __future__ import annotations

import html
import itertools
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from granola_vault.core.timestamps import parse_timestamp
from granola_vault.models import DatePrefixFormat, RemoteDocument

INVALID_DATE = "INVALID-DATE"
MARKDOWN_SUFFIX = ".md"

_UNSAFE_CHARS_RE = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE_RE = re.compile(r"\s+")
# Numbered retries append "-N" to the stamp, which the character class covers.
_BACKUP_RE = re.compile(r"\.backup-[0-9TZ-]+\.md\Z")


def sanitize_filename(name: str, max_length: int = 100) -> str:
    sanitized = _UNSAFE_CHARS_RE.sub("-", name)
    sanitized = _WHITESPACE_RE.sub(" ", sanitized).strip()
    return sanitized[:max_length].strip()


def display_title(doc: RemoteDocument) -> str:
    """Document title with HTML entities decoded; untitled documents get their id."""
    return html.unescape(doc.title.strip()) if doc.title.strip() else f"Untitled-{doc.id}"


def format_date_prefix(value: str, date_format: DatePrefixFormat) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return INVALID_DATE
    year, month, day = f"{parsed.year:04d}", f"{parsed.month:02d}", f"{parsed.day:02d}"
    if date_format is DatePrefixFormat.US:
        return f"{month}-{day}-{year}"
    if date_format is DatePrefixFormat.EU:
        return f"{day}-{month}-{year}"
    if date_format is DatePrefixFormat.DOT:
        return f"{year}.{month}.{day}"
    return f"{year}-{month}-{day}"


def join_vault_path(folder: str, filename: str) -> str:
    folder = folder.strip("/")
    return f"{folder}/{filename}" if folder else filename


def split_suffix(path: str) -> tuple[str, str]:
    if path.endswith(MARKDOWN_SUFFIX):
        return path[: -len(MARKDOWN_SUFFIX)], MARKDOWN_SUFFIX
    return path, ""


def numbered_variants(path: str) -> Iterator[str]:
    """Yield ``<stem>-1.md``, ``<stem>-2.md``, ... for ``path``."""
    base, suffix = split_suffix(path)
    for counter in itertools.count(1):
        yield f"{base}-{counter}{suffix}"


def backup_path(path: str, stamp: str) -> str:
    base, _ = split_suffix(path)
    return f"{base}.backup-{stamp}{MARKDOWN_SUFFIX}"


def is_backup_path(path: str) -> bool:
    """True for files written by ``backup_path``, including their numbered retries."""
    return _BACKUP_RE.search(path) is not None


def unique_filename(path: str, exists: Callable[[str], bool]) -> str:
    """First numbered variant of ``path`` for which ``exists`` is false."""
    return next(candidate for candidate in numbered_variants(path) if not exists(candidate))


@dataclass(frozen=True)
class FilenamePolicy:
    date_format: DatePrefixFormat = DatePrefixFormat.ISO
    max_length: int = 100

    def title_stem(self, doc: RemoteDocument) -> str:
        return sanitize_filename(display_title(doc), self.max_length)

    def legacy_filename(self, doc: RemoteDocument) -> str:
        return f"{self.title_stem(doc)}{MARKDOWN_SUFFIX}"

    def date_prefixed_filename(self, doc: RemoteDocument) -> str:
        prefix = format_date_prefix(doc.created_at, self.date_format)
        return f"{prefix} - {self.title_stem(doc)}{MARKDOWN_SUFFIX}"

    def filename(self, doc: RemoteDocument) -> str:
        """The name the converter writes under."""
        if self.date_format is DatePrefixFormat.NONE:
            return self.legacy_filename(doc)
        return self.date_prefixed_filename(doc)

    def candidate_filenames(self, doc: RemoteDocument) -> list[str]:
        """Every name a previous import of ``doc`` could have used: legacy first, then date-prefixed."""
        names = [self.legacy_filename(doc)]
        if self.date_format is not DatePrefixFormat.NONE:
            dated = self.date_prefixed_filename(doc)
            if dated not in names:
                names.append(dated)
        return names
