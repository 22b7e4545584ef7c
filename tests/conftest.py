import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from granola_vault.conflicts import Skip, StaticResolver
from granola_vault.converter import MarkdownConverter
from granola_vault.pipeline.orchestrator import ImportOrchestrator
from granola_vault.vault import FileSystemVault
from tests.helpers import MemoryVault


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config and GRANOLA_VAULT_* variables out of every test."""
    import os

    for key in list(os.environ):
        if key.startswith("GRANOLA_VAULT_"):
            monkeypatch.delenv(key, raising=False)
    config_file = tmp_path / "config" / "config.json"
    monkeypatch.setenv("GRANOLA_VAULT_CONFIG", str(config_file))
    return config_file


@pytest.fixture
def memory_vault():
    return MemoryVault()


@pytest.fixture
def vault_root(tmp_path):
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def fs_vault(vault_root):
    return FileSystemVault(vault_root)


@pytest.fixture
def skip_resolver():
    return StaticResolver(Skip("Skipped in test"))


@pytest.fixture
def orchestrator(memory_vault, skip_resolver):
    return ImportOrchestrator(memory_vault, MarkdownConverter(), skip_resolver)
