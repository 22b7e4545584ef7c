"""Tests for the conflict resolution protocol."""
from __future__ import annotations

import asyncio

import pytest

from granola_vault.conflicts import (
    CLOSED_WITHOUT_CHOICE,
    DIFF_NOT_AVAILABLE,
    CallbackResolver,
    ConflictHandshake,
    ConflictRequest,
    ConflictResolver,
    Merge,
    Overwrite,
    Rename,
    Skip,
    StaticResolver,
    ViewDiff,
    normalize_resolution,
)
from granola_vault.errors import ConflictProtocolError
from granola_vault.models import ImportStatus
from tests.helpers import make_document, make_metadata


def _request() -> ConflictRequest:
    doc = make_document()
    return ConflictRequest(doc, make_metadata(doc, ImportStatus.CONFLICT))


class TestResolutions:
    def test_merge_rejects_unknown_strategy(self):
        with pytest.raises(ValueError):
            Merge(strategy="sideways")  # type: ignore[arg-type]

    def test_rename_requires_a_name(self):
        with pytest.raises(ValueError):
            Rename("   ")

    def test_actions(self):
        assert [r.action for r in (Skip("x"), Overwrite(), Merge(), Rename("a.md"), ViewDiff())] == [
            "skip",
            "overwrite",
            "merge",
            "rename",
            "view-diff",
        ]


class TestNormalize:
    def test_passes_actionable_resolutions_through(self):
        for resolution in (Skip("x"), Overwrite(create_backup=True), Merge("prepend"), Rename("a.md")):
            assert normalize_resolution(resolution) == resolution

    def test_view_diff_becomes_skip(self):
        assert normalize_resolution(ViewDiff()) == Skip(DIFF_NOT_AVAILABLE)

    def test_none_becomes_skip(self):
        assert normalize_resolution(None) == Skip(CLOSED_WITHOUT_CHOICE)

    def test_garbage_is_rejected(self):
        with pytest.raises(ConflictProtocolError):
            normalize_resolution("overwrite")


class TestHandshake:
    async def test_choose_completes(self):
        handshake = ConflictHandshake(_request())
        assert handshake.choose(Overwrite())
        assert await handshake.wait() == Overwrite()

    async def test_close_without_choice_skips(self):
        handshake = ConflictHandshake(_request())
        handshake.close()
        assert await handshake.wait() == Skip("User cancelled conflict resolution")

    async def test_second_completion_is_ignored(self):
        handshake = ConflictHandshake(_request())
        handshake.choose(Merge())
        assert not handshake.choose(Overwrite())
        handshake.close()
        assert await handshake.wait() == Merge()

    async def test_context_manager_closes(self):
        with ConflictHandshake(_request()) as handshake:
            pass
        assert handshake.done
        assert await handshake.wait() == Skip(CLOSED_WITHOUT_CHOICE)


class TestCallbackResolver:
    async def test_synchronous_presenter(self):
        resolver = CallbackResolver(lambda handshake: handshake.choose(Rename("Other.md")))
        doc = make_document()
        result = await resolver.resolve(doc, make_metadata(doc, ImportStatus.CONFLICT), None)
        assert result == Rename("Other.md")

    async def test_presenter_completing_later(self):
        opened: list[ConflictHandshake] = []
        resolver = CallbackResolver(opened.append)
        doc = make_document()

        task = asyncio.create_task(resolver.resolve(doc, make_metadata(doc, ImportStatus.CONFLICT), None))
        await asyncio.sleep(0)
        assert not task.done()

        opened[0].close()
        assert await task == Skip(CLOSED_WITHOUT_CHOICE)

    async def test_async_presenter(self):
        async def present(handshake: ConflictHandshake) -> None:
            await asyncio.sleep(0)
            handshake.choose(Overwrite(create_backup=True))

        doc = make_document()
        result = await CallbackResolver(present).resolve(doc, make_metadata(doc, ImportStatus.CONFLICT), None)
        assert result == Overwrite(create_backup=True)

    async def test_presenter_leaving_dialog_block_skips(self):
        def present(handshake: ConflictHandshake) -> None:
            with handshake:
                pass

        doc = make_document()
        result = await CallbackResolver(present).resolve(doc, make_metadata(doc, ImportStatus.CONFLICT), None)
        assert result == Skip(CLOSED_WITHOUT_CHOICE)

    async def test_presenter_abandoning_handshake_waits_until_completed(self):
        opened: list[ConflictHandshake] = []

        def present(handshake: ConflictHandshake) -> None:
            opened.append(handshake)

        doc = make_document()
        task = asyncio.create_task(CallbackResolver(present).resolve(doc, make_metadata(doc, ImportStatus.CONFLICT), None))
        await asyncio.sleep(0.01)

        assert not task.done()
        assert not opened[0].done
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_presenter_error_propagates(self):
        def explode(handshake: ConflictHandshake) -> None:
            raise RuntimeError("dialog crashed")

        doc = make_document()
        with pytest.raises(RuntimeError, match="dialog crashed"):
            await CallbackResolver(explode).resolve(doc, make_metadata(doc, ImportStatus.CONFLICT), None)


def test_resolvers_satisfy_protocol():
    assert isinstance(StaticResolver(Skip("x")), ConflictResolver)
    assert isinstance(CallbackResolver(lambda handshake: None), ConflictResolver)
