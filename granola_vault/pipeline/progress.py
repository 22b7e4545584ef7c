"""Progress tracking for import runs.

``ProgressAggregator`` owns the run summary (``ImportRun``) and the
per-document map (``DocumentProgress``). Every transition recomputes the
summary and notifies subscribers with snapshots; subscribers never see
live objects.

Subscribers are called synchronously in subscription order. A subscriber
that raises is logged and does not stop dispatch to the others.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from granola_vault.core.log import get_logger
from granola_vault.core.timestamps import utc_now
from granola_vault.models import VaultFile

logger = get_logger(__name__)


class DocumentState(str, Enum):
    PENDING = "pending"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentState.COMPLETED, DocumentState.FAILED, DocumentState.SKIPPED)


@dataclass
class DocumentProgress:
    id: str
    title: str = ""
    state: DocumentState = DocumentState.PENDING
    percent: int = 0
    message: str = "Waiting to start..."
    error: Optional[str] = None
    file: Optional[VaultFile] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


@dataclass
class ImportRun:
    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    percent: float = 0.0
    message: str = "Ready"
    is_running: bool = False
    is_cancelled: bool = False
    start_time: Optional[datetime] = None
    throughput: float = 0.0  # documents per second
    eta: Optional[float] = None  # seconds

    @property
    def processed(self) -> int:
        return self.completed + self.failed + self.skipped


ProgressCallback = Callable[[ImportRun], None]
DocumentProgressCallback = Callable[[DocumentProgress], None]


def _dispatch(handlers: list, snapshot: object) -> None:
    for handler in list(handlers):
        try:
            handler(snapshot)
        except Exception:
            logger.exception(
                "progress_subscriber_failed",
                handler=getattr(handler, "__name__", repr(handler)),
                snapshot=type(snapshot).__name__,
            )


class ProgressAggregator:
    """Owns run and per-document progress for one orchestrator."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started_at: float | None = None
        self._run = ImportRun()
        self._documents: dict[str, DocumentProgress] = {}
        self._run_handlers: list[ProgressCallback] = []
        self._document_handlers: list[DocumentProgressCallback] = []

    # -- subscriptions -----------------------------------------------------

    def on_progress(self, callback: ProgressCallback) -> Callable[[], None]:
        """Subscribe to run snapshots. Returns an unsubscribe function."""
        self._run_handlers.append(callback)
        return lambda: self._remove(self._run_handlers, callback)

    def on_document_progress(self, callback: DocumentProgressCallback) -> Callable[[], None]:
        """Subscribe to per-document snapshots. Returns an unsubscribe function."""
        self._document_handlers.append(callback)
        return lambda: self._remove(self._document_handlers, callback)

    @staticmethod
    def _remove(handlers: list, callback: object) -> None:
        if callback in handlers:
            handlers.remove(callback)

    # -- run lifecycle -----------------------------------------------------

    def start_run(self, documents: Iterable[tuple[str, str]]) -> None:
        """Begin a run over ``(id, title)`` pairs; every document starts pending."""
        self._documents = {doc_id: DocumentProgress(id=doc_id, title=title) for doc_id, title in documents}
        self._started_at = self._clock()
        self._run = ImportRun(
            total=len(self._documents),
            message="Starting import...",
            is_running=True,
            start_time=utc_now(),
        )
        self._recompute()
        self._emit_run()

    def cancel(self) -> None:
        if self._run.is_cancelled:
            return
        self._run.is_cancelled = True
        if self._run.is_running:
            self._run.message = "Cancelling import..."
        self._emit_run()

    def finish_run(self) -> ImportRun:
        self._recompute()
        self._run.is_running = False
        self._run.eta = None
        run = self._run
        if run.is_cancelled:
            run.message = f"Import cancelled: {run.completed} imported, {run.failed} failed, {run.skipped} skipped"
        else:
            run.message = f"Import finished: {run.completed} imported, {run.failed} failed, {run.skipped} skipped"
        self._emit_run()
        return self.snapshot()

    def reset(self) -> None:
        self._documents = {}
        self._started_at = None
        self._run = ImportRun()

    # -- transitions -------------------------------------------------------

    def update(
        self,
        document_id: str,
        state: DocumentState,
        *,
        percent: int | None = None,
        message: str | None = None,
        error: str | None = None,
        file: VaultFile | None = None,
    ) -> None:
        """Move a document to ``state`` and notify subscribers.

        Terminal states are final for the run; a late update for a finished
        document is logged and ignored.
        """
        entry = self._documents.get(document_id)
        if entry is None:
            logger.warning("progress_unknown_document", document_id=document_id, state=state.value)
            return
        if entry.state.is_terminal:
            logger.warning(
                "progress_update_after_terminal",
                document_id=document_id,
                current=entry.state.value,
                requested=state.value,
            )
            return

        entry.state = state
        if state is DocumentState.IMPORTING and entry.start_time is None:
            entry.start_time = utc_now()
        if state.is_terminal:
            entry.end_time = utc_now()
            entry.percent = 100
        if percent is not None and not state.is_terminal:
            entry.percent = max(0, min(100, percent))
        if message is not None:
            entry.message = message
        if error is not None:
            entry.error = error
        if file is not None:
            entry.file = file

        _dispatch(self._document_handlers, replace(entry))
        if state.is_terminal:
            self._recompute()
            self._run.message = f"Processed {self._run.processed} of {self._run.total} documents"
            self._emit_run()

    def _recompute(self) -> None:
        run = self._run
        run.completed = run.failed = run.skipped = 0
        for entry in self._documents.values():
            if entry.state is DocumentState.COMPLETED:
                run.completed += 1
            elif entry.state is DocumentState.FAILED:
                run.failed += 1
            elif entry.state is DocumentState.SKIPPED:
                run.skipped += 1

        processed = run.processed
        run.percent = 100.0 if run.total == 0 else round(processed / run.total * 100, 1)

        elapsed = self._clock() - self._started_at if self._started_at is not None else 0.0
        run.throughput = processed / elapsed if elapsed > 0 else 0.0
        remaining = run.total - processed
        run.eta = remaining / run.throughput if run.throughput > 0 and remaining > 0 else None

    def _emit_run(self) -> None:
        _dispatch(self._run_handlers, self.snapshot())

    # -- accessors ---------------------------------------------------------

    def snapshot(self) -> ImportRun:
        return replace(self._run)

    def document(self, document_id: str) -> DocumentProgress | None:
        entry = self._documents.get(document_id)
        return replace(entry) if entry is not None else None

    def documents(self) -> dict[str, DocumentProgress]:
        return {doc_id: replace(entry) for doc_id, entry in self._documents.items()}


__all__ = [
    "DocumentState",
    "DocumentProgress",
    "ImportRun",
    "ProgressAggregator",
    "ProgressCallback",
    "DocumentProgressCallback",
]
