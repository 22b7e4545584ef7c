"""Import orchestration.

Drives selected remote documents through conversion, duplicate handling,
optional human conflict resolution and vault writes, under bounded
concurrency.

Per-document state machine::

    pending ──▶ importing ──▶ completed | failed | skipped
       └──────────────────────────────────────▶ skipped   (cancelled before admission)

Admission takes a semaphore permit before a document's task starts and the
task holds it for its whole pipeline, including the wait on a conflict
dialog. Cancellation is cooperative: it is checked before each admission
and again once a permit is granted. Admitted documents always run to a
terminal state; nothing is rolled back.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from granola_vault.config import ImportOptions
from granola_vault.conflicts import ConflictResolver, Merge, Overwrite, Rename, Skip, normalize_resolution
from granola_vault.converter import Converter, is_empty_document
from granola_vault.core.log import get_logger
from granola_vault.core.timestamps import backup_stamp
from granola_vault.dedup.index import DuplicateIndex
from granola_vault.errors import (
    ConcurrentRunError,
    ConflictProtocolError,
    ConversionError,
    GranolaVaultError,
    NothingToRetryError,
    WriteError,
)
from granola_vault.metadata import build_bulk_metadata
from granola_vault.models import (
    ConvertedNote,
    DisplayMetadata,
    ImportStatus,
    ImportStrategy,
    RemoteDocument,
    StatusCheck,
    VaultFile,
)
from granola_vault.naming import MARKDOWN_SUFFIX, backup_path, join_vault_path, numbered_variants
from granola_vault.pipeline.failures import FailureRecord, FailureRegistry
from granola_vault.pipeline.progress import (
    DocumentProgress,
    DocumentProgressCallback,
    DocumentState,
    ImportRun,
    ProgressAggregator,
    ProgressCallback,
)
from granola_vault.preamble import body_of, split_preamble
from granola_vault.vault import Vault, normalize_vault_path

logger = get_logger(__name__)

MERGE_SEPARATOR = "\n\n---\n\n"

QueueItem = tuple[RemoteDocument, DisplayMetadata]


@dataclass(frozen=True)
class _Outcome:
    state: DocumentState
    message: str
    file: VaultFile | None = None


class ImportOrchestrator:
    """Runs import batches against one vault.

    Exactly one run may be active at a time; a second ``import_documents``
    or ``retry_failed_imports`` call while a run is active raises
    ``ConcurrentRunError`` without touching any state.
    """

    def __init__(
        self,
        vault: Vault,
        converter: Converter,
        resolver: ConflictResolver,
        index: DuplicateIndex | None = None,
        progress: ProgressAggregator | None = None,
        failures: FailureRegistry | None = None,
    ) -> None:
        self.vault = vault
        self.converter = converter
        self.resolver = resolver
        self.index = index or DuplicateIndex(vault, getattr(converter, "policy", None))
        self.progress = progress or ProgressAggregator()
        self.failures = failures or FailureRegistry()
        self._running = False
        self._cancel_requested = False
        self._index_stale = False
        self._last_options: ImportOptions | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    async def classify(self, documents: Sequence[RemoteDocument]) -> list[DisplayMetadata]:
        """Classify documents against the vault and build their selection metadata.

        The index is rescanned first if a run has written to the vault since
        the last classification.

        Raises:
            ScanError: If the vault cannot be enumerated
        """
        if self._index_stale:
            await self.index.refresh()
            self._index_stale = False
        else:
            await self.index.initialize()
        statuses = await self.index.check_documents(documents)
        return build_bulk_metadata(documents, statuses)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def import_documents(
        self,
        metadata: Iterable[DisplayMetadata],
        documents: Iterable[RemoteDocument],
        options: ImportOptions | None = None,
    ) -> ImportRun:
        """Import every selected, visible document that was actually fetched.

        Selected ids missing from ``documents`` are silently excluded from
        the run total.

        Args:
            metadata: Selection metadata, in the order documents should be admitted
            documents: The fetched remote documents
            options: Per-run options; defaults apply when omitted

        Returns:
            The final ``ImportRun`` snapshot

        Raises:
            ConcurrentRunError: If a run is already active
        """
        if self._running:
            raise ConcurrentRunError("An import is already running")
        by_id = {doc.id: doc for doc in documents}
        queue: list[QueueItem] = []
        seen: set[str] = set()
        for meta in metadata:
            if not (meta.selected and meta.visible) or meta.id in seen or meta.id not in by_id:
                continue
            seen.add(meta.id)
            queue.append((by_id[meta.id], meta))
        return await self._execute(queue, options or ImportOptions())

    async def retry_failed_imports(self, options: ImportOptions | None = None) -> ImportRun:
        """Re-run exactly the documents in the failure registry from their stored context.

        Ids leave the registry only when their retry completes or is skipped
        by choice.

        Raises:
            ConcurrentRunError: If a run is already active
            NothingToRetryError: If no document has failed
        """
        if self._running:
            raise ConcurrentRunError("An import is already running")
        records = self.failures.records()
        if not records:
            raise NothingToRetryError("No failed imports to retry")
        logger.info("retrying_failed_imports", count=len(records))
        queue = [(record.document, record.metadata) for record in records]
        return await self._execute(queue, options or self._last_options or ImportOptions())

    def cancel(self) -> None:
        """Request cooperative cancellation of the active run."""
        if not self._running:
            logger.debug("cancel_ignored_no_active_run")
            return
        if not self._cancel_requested:
            logger.info("import_cancel_requested")
        self._cancel_requested = True
        self.progress.cancel()

    async def _execute(self, queue: list[QueueItem], options: ImportOptions) -> ImportRun:
        # Claimed before the first await: a concurrent caller sees it immediately.
        self._running = True
        self._cancel_requested = False
        self._last_options = options
        log = logger.bind(total=len(queue), strategy=options.strategy.value)
        self.progress.start_run((doc.id, meta.title) for doc, meta in queue)
        log.info("import_started", concurrency=options.max_concurrency)
        try:
            admissible: list[QueueItem] = []
            for doc, meta in queue:
                if options.skip_empty_documents and is_empty_document(doc):
                    self.failures.discard(doc.id)
                    self.progress.update(doc.id, DocumentState.SKIPPED, message="Empty document")
                else:
                    admissible.append((doc, meta))
            await self._admit(admissible, options)
        finally:
            run = self.progress.finish_run()
            self._running = False
            self._index_stale = True
        log.info(
            "import_finished",
            completed=run.completed,
            failed=run.failed,
            skipped=run.skipped,
            cancelled=run.is_cancelled,
        )
        return run

    async def _admit(self, items: list[QueueItem], options: ImportOptions) -> None:
        semaphore = asyncio.Semaphore(options.max_concurrency)
        tasks: list[asyncio.Task[None]] = []
        for position, (doc, meta) in enumerate(items):
            if self._cancel_requested:
                self._skip_unadmitted(items[position:])
                break
            await semaphore.acquire()
            if self._cancel_requested:
                semaphore.release()
                self._skip_unadmitted(items[position:])
                break
            tasks.append(asyncio.create_task(self._run_admitted(semaphore, doc, meta, options)))
            if options.delay_between_imports > 0 and position + 1 < len(items):
                await asyncio.sleep(options.delay_between_imports)
        await asyncio.gather(*tasks)

    def _skip_unadmitted(self, items: list[QueueItem]) -> None:
        for doc, _ in items:
            self.progress.update(doc.id, DocumentState.SKIPPED, message="Import cancelled")

    async def _run_admitted(
        self,
        semaphore: asyncio.Semaphore,
        doc: RemoteDocument,
        meta: DisplayMetadata,
        options: ImportOptions,
    ) -> None:
        try:
            await self._import_one(doc, meta, options)
        finally:
            semaphore.release()

    async def _import_one(self, doc: RemoteDocument, meta: DisplayMetadata, options: ImportOptions) -> None:
        doc_log = logger.bind(document_id=doc.id, status=meta.import_status.status.value)
        self.progress.update(doc.id, DocumentState.IMPORTING, percent=10, message="Converting document...")
        try:
            outcome = await self._process(doc, meta, options)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            if isinstance(exc, GranolaVaultError):
                doc_log.warning("document_import_failed", error=error, error_type=type(exc).__name__)
            else:
                doc_log.exception("document_import_failed", error=error)
            self.failures.record(doc, meta, error)
            self.progress.update(doc.id, DocumentState.FAILED, message="Import failed", error=error)
            if options.stop_on_error:
                self.cancel()
            return

        self.failures.discard(doc.id)
        doc_log.debug(
            "document_import_settled",
            state=outcome.state.value,
            path=outcome.file.path if outcome.file else None,
        )
        self.progress.update(doc.id, outcome.state, message=outcome.message, file=outcome.file)

    # ------------------------------------------------------------------
    # Per-document pipeline
    # ------------------------------------------------------------------

    async def _process(self, doc: RemoteDocument, meta: DisplayMetadata, options: ImportOptions) -> _Outcome:
        status = meta.import_status
        already_imported = status.status in (ImportStatus.EXISTS, ImportStatus.UPDATED)
        needs_choice = (
            status.requires_user_choice
            or status.status is ImportStatus.CONFLICT
            or (options.always_prompt and already_imported)
        )

        if already_imported and not needs_choice and options.strategy is ImportStrategy.SKIP:
            if status.status is ImportStatus.UPDATED:
                return _Outcome(DocumentState.SKIPPED, "Newer version available; skipped by strategy")
            return _Outcome(DocumentState.SKIPPED, "Document already exists")

        note = self._convert(doc)
        target = join_vault_path(options.target_folder, note.filename)

        if needs_choice:
            return await self._resolve_conflict(doc, meta, note, target, options)

        self.progress.update(doc.id, DocumentState.IMPORTING, percent=60, message="Writing to vault...")
        if not already_imported:
            file = await self._create(target, note.content)
        elif options.strategy is ImportStrategy.UPDATE:
            file = await self._update(status, target, note, backup=options.create_backups)
        else:
            file = await self._create(await self._free_variant(target), note.content)
        return _Outcome(DocumentState.COMPLETED, "Import completed successfully", file)

    def _convert(self, doc: RemoteDocument) -> ConvertedNote:
        try:
            return self.converter.convert(doc)
        except ConversionError:
            raise
        except Exception as exc:
            raise ConversionError(str(exc) or f"Failed to convert document {doc.id}") from exc

    async def _resolve_conflict(
        self,
        doc: RemoteDocument,
        meta: DisplayMetadata,
        note: ConvertedNote,
        target: str,
        options: ImportOptions,
    ) -> _Outcome:
        status = meta.import_status
        self.progress.update(doc.id, DocumentState.IMPORTING, percent=40, message="Resolving conflict...")
        try:
            answer = await self.resolver.resolve(doc, meta, status.existing)
        except ConflictProtocolError:
            raise
        except Exception as exc:
            raise ConflictProtocolError(str(exc) or "Conflict resolution failed") from exc

        resolution = normalize_resolution(answer)
        logger.info("conflict_resolved", document_id=doc.id, action=resolution.action)
        if isinstance(resolution, Skip):
            return _Outcome(DocumentState.SKIPPED, resolution.reason)

        self.progress.update(
            doc.id,
            DocumentState.IMPORTING,
            percent=60,
            message=f"Applying resolution: {resolution.action}...",
        )
        if isinstance(resolution, Overwrite):
            file = await self._update(status, target, note, backup=resolution.create_backup)
        elif isinstance(resolution, Merge):
            file = await self._merge(status, target, note, resolution)
        elif isinstance(resolution, Rename):
            file = await self._create(self._rename_target(resolution, options), note.content)
        else:
            raise ConflictProtocolError(f"Unhandled resolution: {resolution!r}")
        return _Outcome(DocumentState.COMPLETED, "Conflict resolved and imported successfully", file)

    async def _update(self, status: StatusCheck, target: str, note: ConvertedNote, *, backup: bool) -> VaultFile:
        existing = await self._existing_file(status, target)
        if existing is None:
            return await self._create(target, note.content)
        if backup:
            await self._backup(existing)
        await self._modify(existing, note.content)
        return existing

    async def _merge(self, status: StatusCheck, target: str, note: ConvertedNote, resolution: Merge) -> VaultFile:
        existing = await self._existing_file(status, target)
        if existing is None:
            return await self._create(target, note.content)
        current = await self._read(existing)
        preamble, existing_body = split_preamble(current)
        incoming = body_of(note.content)
        if resolution.strategy == "append":
            first, second = existing_body, incoming
        else:
            first, second = incoming, existing_body
        merged = f"{first.strip()}{MERGE_SEPARATOR}{second.strip()}\n"
        # The existing preamble is kept so the file stays attributed to its original import.
        await self._modify(existing, f"{preamble}\n{merged}" if preamble else merged)
        return existing

    @staticmethod
    def _rename_target(resolution: Rename, options: ImportOptions) -> str:
        name = resolution.new_filename.strip()
        if not name.endswith(MARKDOWN_SUFFIX):
            name = f"{name}{MARKDOWN_SUFFIX}"
        if "/" in name.replace("\\", "/"):
            return normalize_vault_path(name)
        return join_vault_path(options.target_folder, name)

    # ------------------------------------------------------------------
    # Vault writes
    # ------------------------------------------------------------------

    async def _existing_file(self, status: StatusCheck, target: str) -> VaultFile | None:
        if status.existing is not None:
            current = await self.vault.get_by_path(status.existing.path)
            if current is not None:
                return current
        return await self.vault.get_by_path(target)

    async def _free_variant(self, path: str) -> str:
        candidates = numbered_variants(path)
        candidate = next(candidates)
        while await self.vault.get_by_path(candidate) is not None:
            candidate = next(candidates)
        return candidate

    async def _attempt_create(self, path: str, content: str) -> VaultFile:
        try:
            return await self.vault.create(path, content)
        except FileExistsError as exc:
            raise WriteError(str(exc) or f"File already exists: {path}", path=path, name_taken=True) from exc
        except Exception as exc:
            raise WriteError(str(exc) or f"Failed to create {path}", path=path) from exc

    async def _create(self, path: str, content: str) -> VaultFile:
        """Create ``path``; if the name is taken, retry once under a numbered variant."""
        try:
            return await self._attempt_create(path, content)
        except WriteError as exc:
            if not exc.name_taken:
                raise
        alternative = await self._free_variant(path)
        logger.info("vault_name_taken", path=path, retry_path=alternative)
        return await self._attempt_create(alternative, content)

    async def _modify(self, file: VaultFile, content: str) -> None:
        try:
            await self.vault.modify(file, content)
        except Exception as exc:
            raise WriteError(str(exc) or f"Failed to modify {file.path}", path=file.path) from exc

    async def _read(self, file: VaultFile) -> str:
        try:
            return await self.vault.read(file)
        except Exception as exc:
            raise WriteError(str(exc) or f"Failed to read {file.path}", path=file.path) from exc

    async def _backup(self, file: VaultFile) -> VaultFile:
        backup = await self._create(backup_path(file.path, backup_stamp()), await self._read(file))
        logger.info("backup_created", path=file.path, backup=backup.path)
        return backup

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_progress(self) -> ImportRun:
        return self.progress.snapshot()

    def get_document_progress(self, document_id: str) -> DocumentProgress | None:
        return self.progress.document(document_id)

    def get_all_document_progress(self) -> dict[str, DocumentProgress]:
        return self.progress.documents()

    def get_failed_documents(self) -> list[FailureRecord]:
        return self.failures.records()

    def on_progress(self, callback: ProgressCallback):
        return self.progress.on_progress(callback)

    def on_document_progress(self, callback: DocumentProgressCallback):
        return self.progress.on_document_progress(callback)

    def reset(self) -> None:
        """Forget progress and failures from previous runs.

        Raises:
            ConcurrentRunError: If a run is active
        """
        if self._running:
            raise ConcurrentRunError("Cannot reset while an import is running")
        self.progress.reset()
        self.failures.clear()
        self._cancel_requested = False


__all__ = ["ImportOrchestrator", "MERGE_SEPARATOR"]
