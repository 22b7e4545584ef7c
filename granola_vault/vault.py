"""Vault access.

The orchestrator and the index only see the ``Vault`` protocol; the
filesystem implementation below keeps blocking I/O off the event loop by
running it in worker threads.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from granola_vault.core.log import get_logger
from granola_vault.models import VaultFile

logger = get_logger(__name__)


@runtime_checkable
class Vault(Protocol):
    """Asynchronous, fallible file store addressed by vault-relative paths."""

    async def create(self, path: str, content: str) -> VaultFile:
        """Create a new file.

        Raises:
            FileExistsError: If ``path`` is already taken
        """
        ...

    async def modify(self, file: VaultFile, content: str) -> None:
        ...

    async def read(self, file: VaultFile) -> str:
        ...

    async def get_by_path(self, path: str) -> VaultFile | None:
        ...

    async def list_markdown_files(self) -> list[VaultFile]:
        ...


def normalize_vault_path(path: str) -> str:
    """Vault-relative POSIX path; rejects absolute paths and parent traversal."""
    text = path.replace("\\", "/").strip()
    pure = PurePosixPath(text)
    if pure.is_absolute() or ".." in pure.parts or not pure.parts:
        raise ValueError(f"Invalid vault path: {path!r}")
    return str(pure)


class FileSystemVault:
    """A vault backed by a directory of Markdown files."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser()

    def _resolve(self, path: str) -> Path:
        return self.root / normalize_vault_path(path)

    def _create_sync(self, path: str, content: str) -> VaultFile:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        # Exclusive create: two tasks racing for one name cannot both win.
        with target.open("x", encoding="utf-8") as handle:
            handle.write(content)
        return VaultFile(normalize_vault_path(path))

    def _modify_sync(self, file: VaultFile, content: str) -> None:
        target = self._resolve(file.path)
        if not target.is_file():
            raise FileNotFoundError(f"Vault file disappeared: {file.path}")
        target.write_text(content, encoding="utf-8")

    def _list_sync(self) -> list[VaultFile]:
        if not self.root.is_dir():
            raise FileNotFoundError(f"Vault root does not exist: {self.root}")
        files = []
        for candidate in sorted(self.root.rglob("*.md")):
            relative = candidate.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if candidate.is_file():
                files.append(VaultFile(relative.as_posix()))
        return files

    async def create(self, path: str, content: str) -> VaultFile:
        file = await asyncio.to_thread(self._create_sync, path, content)
        logger.debug("vault_file_created", path=file.path)
        return file

    async def modify(self, file: VaultFile, content: str) -> None:
        await asyncio.to_thread(self._modify_sync, file, content)
        logger.debug("vault_file_modified", path=file.path)

    async def read(self, file: VaultFile) -> str:
        return await asyncio.to_thread(self._resolve(file.path).read_text, encoding="utf-8")

    async def get_by_path(self, path: str) -> VaultFile | None:
        normalized = normalize_vault_path(path)
        exists = await asyncio.to_thread(self._resolve(normalized).is_file)
        return VaultFile(normalized) if exists else None

    async def list_markdown_files(self) -> list[VaultFile]:
        return await asyncio.to_thread(self._list_sync)


__all__ = ["Vault", "FileSystemVault", "normalize_vault_path"]
