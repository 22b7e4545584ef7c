"""Conflict resolution protocol.

When the index cannot decide on its own, the orchestrator asks a
``ConflictResolver`` (the human-facing surface) for exactly one
``Resolution``. This is the only place the pipeline waits on a person.

The UI side completes a ``ConflictHandshake`` exactly once; closing it
without a choice completes it with ``Skip`` so the pipeline is never left
waiting on an abandoned dialog.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Optional, Protocol, Union, runtime_checkable

from granola_vault.core.log import get_logger
from granola_vault.errors import ConflictProtocolError
from granola_vault.models import DisplayMetadata, RemoteDocument, VaultFile

logger = get_logger(__name__)

CLOSED_WITHOUT_CHOICE = "User cancelled conflict resolution"
DIFF_NOT_AVAILABLE = "Diff view is not available; document skipped"

MergeStrategy = Literal["append", "prepend"]


@dataclass(frozen=True)
class Skip:
    reason: str

    action = "skip"


@dataclass(frozen=True)
class Overwrite:
    create_backup: bool = False

    action = "overwrite"


@dataclass(frozen=True)
class Merge:
    strategy: MergeStrategy = "append"

    action = "merge"

    def __post_init__(self) -> None:
        if self.strategy not in ("append", "prepend"):
            raise ValueError(f"Unknown merge strategy: {self.strategy!r}")


@dataclass(frozen=True)
class Rename:
    new_filename: str

    action = "rename"

    def __post_init__(self) -> None:
        if not self.new_filename.strip():
            raise ValueError("Rename requires a filename")


@dataclass(frozen=True)
class ViewDiff:
    """Reserved for a future diff view; resolved as ``Skip`` until then."""

    action = "view-diff"


Resolution = Union[Skip, Overwrite, Merge, Rename, ViewDiff]


@dataclass(frozen=True)
class ConflictRequest:
    document: RemoteDocument
    metadata: DisplayMetadata
    existing: Optional[VaultFile] = None


@runtime_checkable
class ConflictResolver(Protocol):
    async def resolve(
        self,
        document: RemoteDocument,
        metadata: DisplayMetadata,
        existing: VaultFile | None,
    ) -> Resolution:
        ...


def normalize_resolution(value: object) -> Skip | Overwrite | Merge | Rename:
    """Map a resolver's answer onto an actionable resolution.

    Raises:
        ConflictProtocolError: If ``value`` is not a resolution at all
    """
    if value is None:
        return Skip(CLOSED_WITHOUT_CHOICE)
    if isinstance(value, ViewDiff):
        return Skip(DIFF_NOT_AVAILABLE)
    if isinstance(value, (Skip, Overwrite, Merge, Rename)):
        return value
    raise ConflictProtocolError(f"Resolver returned an unknown resolution: {value!r}")


class ConflictHandshake:
    """Single-shot future completed by the UI.

    Use as a context manager around the interaction: leaving the block
    without a choice resolves to ``Skip``.
    """

    def __init__(self, request: ConflictRequest) -> None:
        self.request = request
        self._future: asyncio.Future[Resolution] = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def choose(self, resolution: Resolution) -> bool:
        """Complete the handshake. Returns False (and changes nothing) if already completed."""
        if self._future.done():
            logger.warning(
                "conflict_resolution_ignored",
                document_id=self.request.document.id,
                action=getattr(resolution, "action", None),
            )
            return False
        self._future.set_result(resolution)
        return True

    def close(self) -> None:
        if not self._future.done():
            self._future.set_result(Skip(CLOSED_WITHOUT_CHOICE))

    async def wait(self) -> Resolution:
        return await self._future

    def __enter__(self) -> ConflictHandshake:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


Presenter = Callable[[ConflictHandshake], Union[None, Awaitable[None]]]


class CallbackResolver:
    """Adapts a "present a dialog" callable to the resolver protocol.

    The presenter receives the handshake and must eventually call
    ``choose()`` or ``close()`` on it, synchronously or later from
    another task.

    Limitation: the resolver awaits the handshake for as long as it takes,
    with no timeout. A presenter that returns without completing the
    handshake and never completes it later leaves the document's task
    waiting forever, and that task keeps its concurrency permit. Presenters
    should use the handshake as a context manager, so that leaving the
    dialog in any way resolves to ``Skip``.
    """

    def __init__(self, present: Presenter) -> None:
        self._present = present

    async def resolve(
        self,
        document: RemoteDocument,
        metadata: DisplayMetadata,
        existing: VaultFile | None,
    ) -> Resolution:
        handshake = ConflictHandshake(ConflictRequest(document, metadata, existing))
        outcome = self._present(handshake)
        if inspect.isawaitable(outcome):
            await outcome
        return await handshake.wait()


class StaticResolver:
    """Answers every conflict the same way. For unattended runs."""

    def __init__(self, resolution: Resolution) -> None:
        self.resolution = resolution

    async def resolve(
        self,
        document: RemoteDocument,
        metadata: DisplayMetadata,
        existing: VaultFile | None,
    ) -> Resolution:
        return self.resolution


__all__ = [
    "CLOSED_WITHOUT_CHOICE",
    "DIFF_NOT_AVAILABLE",
    "MergeStrategy",
    "Skip",
    "Overwrite",
    "Merge",
    "Rename",
    "ViewDiff",
    "Resolution",
    "ConflictRequest",
    "ConflictResolver",
    "ConflictHandshake",
    "CallbackResolver",
    "StaticResolver",
    "normalize_resolution",
]
