"""Test utilities and builders for the granola-vault test suite.

Usage:
    from tests.helpers import MemoryVault, make_document, imported_note
"""

from __future__ import annotations

import asyncio
from typing import Any

from granola_vault.models import DisplayMetadata, ImportStatus, RemoteDocument, StatusCheck, VaultFile
from granola_vault.preamble import SOURCE_MARKER, compose_document


# =============================================================================
# DOCUMENT BUILDERS
# =============================================================================


def make_document(
    doc_id: str = "doc-1",
    title: str = "Weekly Sync",
    *,
    created_at: str = "2024-01-15T10:00:00Z",
    updated_at: str = "2024-01-15T11:00:00Z",
    notes_markdown: str | None = "Discussed the roadmap.",
    **extra: Any,
) -> RemoteDocument:
    return RemoteDocument(
        id=doc_id,
        title=title,
        created_at=created_at,
        updated_at=updated_at,
        notes_markdown=notes_markdown,
        **extra,
    )


def make_metadata(
    doc: RemoteDocument,
    status: ImportStatus = ImportStatus.NEW,
    *,
    existing: VaultFile | None = None,
    requires_user_choice: bool | None = None,
    selected: bool = True,
    visible: bool = True,
) -> DisplayMetadata:
    if requires_user_choice is None:
        requires_user_choice = status is ImportStatus.CONFLICT
    return DisplayMetadata(
        id=doc.id,
        title=doc.title,
        import_status=StatusCheck(
            status=status,
            reason=f"{status.value} for test",
            requires_user_choice=requires_user_choice,
            existing=existing,
        ),
        created=doc.created_at,
        updated=doc.updated_at,
        selected=selected,
        visible=visible,
    )


def imported_note(
    doc_id: str,
    title: str = "Weekly Sync",
    *,
    updated: str = "2024-01-15T11:00:00Z",
    body: str = "Discussed the roadmap.",
    source: str = SOURCE_MARKER,
) -> str:
    """Content of a file as a previous import would have written it."""
    return compose_document(
        {
            "id": doc_id,
            "title": title,
            "created": "2024-01-15T10:00:00Z",
            "updated": updated,
            "source": source,
        },
        body,
    )


# =============================================================================
# IN-MEMORY VAULT
# =============================================================================


class MemoryVault:
    """Dict-backed ``Vault`` with failure injection and call recording.

    Every operation yields to the event loop once so concurrent tasks
    interleave the way they would against real I/O.
    """

    def __init__(self, files: dict[str, str] | None = None, *, latency: float = 0.0):
        self.files: dict[str, str] = dict(files or {})
        self.latency = latency
        self.created: list[str] = []
        self.modified: list[str] = []
        self.create_errors: dict[str, BaseException] = {}
        self.modify_errors: dict[str, BaseException] = {}
        self.unreadable: set[str] = set()
        self.list_error: BaseException | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def _io(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
        finally:
            self.in_flight -= 1

    @property
    def writes(self) -> int:
        return len(self.created) + len(self.modified)

    async def create(self, path: str, content: str) -> VaultFile:
        await self._io()
        if path in self.create_errors:
            raise self.create_errors[path]
        if path in self.files:
            raise FileExistsError(f"File already exists: {path}")
        self.files[path] = content
        self.created.append(path)
        return VaultFile(path)

    async def modify(self, file: VaultFile, content: str) -> None:
        await self._io()
        if file.path in self.modify_errors:
            raise self.modify_errors[file.path]
        if file.path not in self.files:
            raise FileNotFoundError(f"Vault file disappeared: {file.path}")
        self.files[file.path] = content
        self.modified.append(file.path)

    async def read(self, file: VaultFile) -> str:
        await asyncio.sleep(0)
        if file.path in self.unreadable:
            raise PermissionError(f"Permission denied: {file.path}")
        return self.files[file.path]

    async def get_by_path(self, path: str) -> VaultFile | None:
        return VaultFile(path) if path in self.files else None

    async def list_markdown_files(self) -> list[VaultFile]:
        if self.list_error is not None:
            raise self.list_error
        return [VaultFile(path) for path in sorted(self.files) if path.endswith(".md")]
