"""Duplicate detection index.

Scans the vault for files this importer produced (identified by the
preamble's ``source`` marker) and classifies remote documents against them:

    NEW      : nothing local, and no filename the converter would use is taken
    EXISTS   : imported before, remote copy not newer
    UPDATED  : imported before, remote copy newer (auto-resolvable)
    CONFLICT : local hand edits, or the target filename belongs to something else

The index is a snapshot. External vault changes are invisible until
``refresh()``. Backup copies written before an update are not indexed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from granola_vault.core.log import get_logger
from granola_vault.core.timestamps import is_newer, parse_timestamp
from granola_vault.dedup.heuristics import DEFAULT_HEURISTICS, ModificationHeuristic, detect_local_modifications
from granola_vault.errors import ParseError, ScanError
from granola_vault.models import ImportStatus, LocalRecord, RemoteDocument, StatusCheck, VaultFile
from granola_vault.naming import FilenamePolicy, is_backup_path
from granola_vault.preamble import body_of, read_imported_metadata
from granola_vault.vault import Vault

logger = get_logger(__name__)


@dataclass(frozen=True)
class IndexStatistics:
    total: int
    oldest: str | None
    newest: str | None
    locally_modified: int


class DuplicateIndex:
    """Vault snapshot keyed by remote id and by basename."""

    def __init__(
        self,
        vault: Vault,
        policy: FilenamePolicy | None = None,
        heuristics: Iterable[ModificationHeuristic] = DEFAULT_HEURISTICS,
    ) -> None:
        self.vault = vault
        self.policy = policy or FilenamePolicy()
        self.heuristics = tuple(heuristics)
        self._records: dict[str, LocalRecord] = {}
        self._name_to_id: dict[str, str] = {}
        self._files_by_name: dict[str, list[VaultFile]] = {}
        self._initialized = False
        self.skipped_files: list[str] = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Scan the vault once; later calls are no-ops until ``refresh()``.

        Raises:
            ScanError: If the vault cannot be enumerated
        """
        if self._initialized:
            return
        await self._scan()
        self._initialized = True

    async def refresh(self) -> None:
        self._records.clear()
        self._name_to_id.clear()
        self._files_by_name.clear()
        self.skipped_files = []
        self._initialized = False
        await self.initialize()

    async def _scan(self) -> None:
        try:
            files = await self.vault.list_markdown_files()
        except Exception as exc:
            raise ScanError(f"Failed to enumerate vault: {exc}") from exc

        log = logger.bind(file_count=len(files))
        log.debug("vault_scan_started")

        for file in files:
            if is_backup_path(file.path):
                # Backups carry the note's preamble verbatim and must never stand in for it.
                logger.debug("vault_backup_ignored", path=file.path)
                continue
            self._files_by_name.setdefault(file.name, []).append(file)
            try:
                record = await self._read_record(file)
            except ParseError as exc:
                logger.warning("vault_file_unparsable", path=file.path, error=str(exc))
                self.skipped_files.append(file.path)
                continue
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("vault_file_unreadable", path=file.path, error=str(exc))
                self.skipped_files.append(file.path)
                continue
            if record is None:
                continue
            previous = self._records.get(record.remote_id)
            if previous is not None:
                logger.warning(
                    "duplicate_remote_id_in_vault",
                    document_id=record.remote_id,
                    kept=previous.file.path,
                    ignored=file.path,
                )
                continue
            self._records[record.remote_id] = record
            self._name_to_id[file.name] = record.remote_id

        log.info("vault_scan_completed", imported=len(self._records), skipped=len(self.skipped_files))

    async def _read_record(self, file: VaultFile) -> LocalRecord | None:
        content = await self.vault.read(file)
        imported = read_imported_metadata(content, path=file.path)
        if imported is None:
            return None
        signals = detect_local_modifications(body_of(content), self.heuristics)
        return LocalRecord(
            file=file,
            remote_id=imported.remote_id,
            updated=imported.updated,
            title=imported.title,
            locally_modified=bool(signals),
            modification_signals=signals,
        )

    def get_record(self, remote_id: str) -> LocalRecord | None:
        return self._records.get(remote_id)

    def records(self) -> list[LocalRecord]:
        return list(self._records.values())

    async def check_document(self, doc: RemoteDocument) -> StatusCheck:
        """Classify one remote document. Pure with respect to the current snapshot."""
        if not self._initialized:
            await self.initialize()

        record = self._records.get(doc.id)
        if record is not None:
            return self._classify_existing(doc, record)

        for filename in self.policy.candidate_filenames(doc):
            owner_id = self._name_to_id.get(filename)
            if owner_id is not None and owner_id != doc.id:
                return StatusCheck(
                    status=ImportStatus.CONFLICT,
                    reason="Filename conflict: another imported document uses this filename",
                    requires_user_choice=True,
                    existing=self._records[owner_id].file,
                )
            foreign = self._files_by_name.get(filename)
            if foreign:
                return StatusCheck(
                    status=ImportStatus.CONFLICT,
                    reason=f"File already exists: {foreign[0].path}",
                    requires_user_choice=True,
                    existing=foreign[0],
                )

        return StatusCheck(status=ImportStatus.NEW, reason="Document not found in vault")

    def _classify_existing(self, doc: RemoteDocument, record: LocalRecord) -> StatusCheck:
        if record.locally_modified:
            signals = ", ".join(record.modification_signals)
            return StatusCheck(
                status=ImportStatus.CONFLICT,
                reason=f"Local modifications detected ({signals})",
                requires_user_choice=True,
                existing=record.file,
            )
        if is_newer(doc.updated_at, record.updated):
            return StatusCheck(
                status=ImportStatus.UPDATED,
                reason=f"Remote version is newer ({doc.updated_at} vs {record.updated})",
                existing=record.file,
            )
        return StatusCheck(
            status=ImportStatus.EXISTS,
            reason="Document already exists with same or newer content",
            existing=record.file,
        )

    async def check_documents(self, documents: Iterable[RemoteDocument]) -> dict[str, StatusCheck]:
        if not self._initialized:
            await self.initialize()
        return {doc.id: await self.check_document(doc) for doc in documents}

    def statistics(self) -> IndexStatistics:
        records = self.records()
        if not records:
            return IndexStatistics(total=0, oldest=None, newest=None, locally_modified=0)
        dated = sorted(
            (record for record in records if parse_timestamp(record.updated) is not None),
            key=lambda record: parse_timestamp(record.updated),
        )
        return IndexStatistics(
            total=len(records),
            oldest=dated[0].updated if dated else None,
            newest=dated[-1].updated if dated else None,
            locally_modified=sum(1 for record in records if record.locally_modified),
        )


__all__ = ["DuplicateIndex", "IndexStatistics"]
