"""Tests for the filesystem vault."""
from __future__ import annotations

import pytest

from granola_vault.models import VaultFile
from granola_vault.vault import FileSystemVault, Vault, normalize_vault_path


def test_filesystem_vault_satisfies_protocol(fs_vault):
    assert isinstance(fs_vault, Vault)


async def test_create_makes_parent_folders(fs_vault, vault_root):
    file = await fs_vault.create("Meetings/2024/Sync.md", "hello")
    assert file == VaultFile("Meetings/2024/Sync.md")
    assert (vault_root / "Meetings" / "2024" / "Sync.md").read_text() == "hello"


async def test_create_refuses_existing_file(fs_vault, vault_root):
    (vault_root / "Sync.md").write_text("original")
    with pytest.raises(FileExistsError):
        await fs_vault.create("Sync.md", "replacement")
    assert (vault_root / "Sync.md").read_text() == "original"


async def test_modify_and_read(fs_vault):
    file = await fs_vault.create("Sync.md", "one")
    await fs_vault.modify(file, "two")
    assert await fs_vault.read(file) == "two"


async def test_modify_missing_file_fails(fs_vault):
    with pytest.raises(FileNotFoundError):
        await fs_vault.modify(VaultFile("gone.md"), "content")


async def test_get_by_path(fs_vault, vault_root):
    (vault_root / "Sync.md").write_text("x")
    assert await fs_vault.get_by_path("Sync.md") == VaultFile("Sync.md")
    assert await fs_vault.get_by_path("Other.md") is None


async def test_listing_skips_hidden_folders_and_other_files(fs_vault, vault_root):
    (vault_root / ".obsidian").mkdir()
    (vault_root / ".obsidian" / "workspace.md").write_text("x")
    (vault_root / "notes").mkdir()
    (vault_root / "notes" / "a.md").write_text("x")
    (vault_root / "b.md").write_text("x")
    (vault_root / "image.png").write_bytes(b"\x89PNG")

    files = await fs_vault.list_markdown_files()

    assert [file.path for file in files] == ["b.md", "notes/a.md"]


async def test_listing_missing_root_fails(tmp_path):
    with pytest.raises(FileNotFoundError):
        await FileSystemVault(tmp_path / "missing").list_markdown_files()


@pytest.mark.parametrize("path", ["/etc/passwd", "../outside.md", "a/../../b.md", ""])
def test_normalize_rejects_escaping_paths(path):
    with pytest.raises(ValueError):
        normalize_vault_path(path)


def test_normalize_converts_separators():
    assert normalize_vault_path("Meetings\\Sync.md") == "Meetings/Sync.md"


def test_vault_file_parts():
    file = VaultFile("Meetings/2024-01-15 - Sync.md")
    assert file.name == "2024-01-15 - Sync.md"
    assert file.stem == "2024-01-15 - Sync"
    assert file.parent == "Meetings"
