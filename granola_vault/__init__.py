"""granola-vault - import remote meeting notes into a Markdown vault.

Example:
    from pathlib import Path

    from granola_vault import (
        FileSystemVault,
        ImportOptions,
        ImportOrchestrator,
        MarkdownConverter,
        StaticResolver,
        Skip,
        load_documents,
    )

    vault = FileSystemVault(Path("~/Notes"))
    orchestrator = ImportOrchestrator(vault, MarkdownConverter(), StaticResolver(Skip("unattended")))

    documents = load_documents("export.json")
    metadata = await orchestrator.classify(documents)
    run = await orchestrator.import_documents(metadata, documents, ImportOptions())
    print(f"{run.completed} imported, {run.failed} failed")
"""

__version__ = "0.4.0"

from granola_vault.config import ImportOptions, ImportSettings, load_settings
from granola_vault.conflicts import (
    CallbackResolver,
    ConflictHandshake,
    ConflictResolver,
    Merge,
    Overwrite,
    Rename,
    Skip,
    StaticResolver,
    ViewDiff,
)
from granola_vault.converter import MarkdownConverter
from granola_vault.dedup import DuplicateIndex
from granola_vault.errors import GranolaVaultError
from granola_vault.loader import load_documents
from granola_vault.models import DisplayMetadata, ImportStatus, ImportStrategy, RemoteDocument, StatusCheck
from granola_vault.pipeline import DocumentState, ImportOrchestrator, ImportRun, ProgressAggregator
from granola_vault.vault import FileSystemVault, Vault

__all__ = [
    "__version__",
    "CallbackResolver",
    "ConflictHandshake",
    "ConflictResolver",
    "DisplayMetadata",
    "DocumentState",
    "DuplicateIndex",
    "FileSystemVault",
    "GranolaVaultError",
    "ImportOptions",
    "ImportOrchestrator",
    "ImportRun",
    "ImportSettings",
    "ImportStatus",
    "ImportStrategy",
    "MarkdownConverter",
    "Merge",
    "Overwrite",
    "ProgressAggregator",
    "RemoteDocument",
    "Rename",
    "Skip",
    "StaticResolver",
    "StatusCheck",
    "Vault",
    "ViewDiff",
    "load_documents",
    "load_settings",
]
