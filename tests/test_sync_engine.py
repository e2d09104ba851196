"""Tests for the end-to-end sync invocation."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from pymxbai.exceptions import (
    MxbaiNetworkError,
    RemoteStateError,
    RevisionUnavailableError,
    StoreNotFoundError,
)
from pymxbai.sync.engine import SyncEngine, SyncPhase
from pymxbai.sync.git import GitInfo
from pymxbai.sync.hashing import calculate_hash

from conftest import FakeStoreClient, synced_file


def _repository(info: GitInfo = GitInfo()):
    repository = Mock()
    repository.get_info = AsyncMock(return_value=info)
    return repository


def _engine(client, base_dir: Path, **kwargs) -> SyncEngine:
    return SyncEngine(client, base_dir=base_dir, repository=_repository(), **kwargs)


def _write(base: Path, relative: str, content: bytes) -> Path:
    path = base / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class TestSyncRun:
    """Tests for SyncEngine.run."""

    @pytest.mark.asyncio
    async def test_full_sync(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        _write(tmp_path, "b.txt", b"new")
        client = FakeStoreClient(
            files=[
                synced_file("f1", "b.txt", calculate_hash(b"old")),
                synced_file("f2", "gone.txt", calculate_hash(b"G")),
            ]
        )
        engine = _engine(client, tmp_path)

        outcome = await engine.run("store_1", ["*.txt"], assume_yes=True)

        assert outcome.phase == SyncPhase.DONE
        assert engine.phase == SyncPhase.DONE
        assert sorted(client.calls("delete")) == ["f1", "f2"]
        assert sorted(client.calls("upload")) == ["a.txt", "b.txt"]
        assert outcome.results is not None
        assert not outcome.has_failures

    @pytest.mark.asyncio
    async def test_second_run_has_nothing_to_do(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient()

        await _engine(client, tmp_path).run("store_1", ["*.txt"], assume_yes=True)
        outcome = await _engine(client, tmp_path).run(
            "store_1", ["*.txt"], assume_yes=True
        )

        assert outcome.change_set.is_empty
        assert outcome.results is None
        assert client.calls("upload") == ["a.txt"]

    @pytest.mark.asyncio
    async def test_store_resolved_by_name(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient()

        outcome = await _engine(client, tmp_path).run("DOC", ["*.txt"], assume_yes=True)

        assert outcome.store["id"] == "store_1"

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient(files=[synced_file("f1", "old.txt", "h")])
        confirm = Mock(return_value=True)

        outcome = await _engine(client, tmp_path).run(
            "store_1", ["*.txt"], dry_run=True, confirm=confirm
        )

        assert outcome.phase == SyncPhase.DONE
        assert outcome.dry_run is True
        assert len(outcome.change_set.added) == 1
        assert outcome.results is None
        assert client.events == []
        confirm.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_diff_skips_confirmation(self, tmp_path):
        confirm = Mock(return_value=True)

        outcome = await _engine(FakeStoreClient(), tmp_path).run(
            "store_1", ["*.txt"], confirm=confirm
        )

        assert outcome.phase == SyncPhase.DONE
        assert outcome.change_set.is_empty
        confirm.assert_not_called()

    @pytest.mark.asyncio
    async def test_declined_confirmation_cancels(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient()

        outcome = await _engine(client, tmp_path).run(
            "store_1", ["*.txt"], confirm=lambda change_set: False
        )

        assert outcome.cancelled
        assert outcome.phase == SyncPhase.CANCELLED
        assert client.events == []

    @pytest.mark.asyncio
    async def test_async_confirmation(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient()
        confirm = AsyncMock(return_value=True)

        outcome = await _engine(client, tmp_path).run(
            "store_1", ["*.txt"], confirm=confirm
        )

        confirm.assert_awaited_once()
        assert client.calls("upload") == ["a.txt"]
        assert outcome.phase == SyncPhase.DONE

    @pytest.mark.asyncio
    async def test_assume_yes_skips_confirmation(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        confirm = Mock(return_value=False)

        outcome = await _engine(FakeStoreClient(), tmp_path).run(
            "store_1", ["*.txt"], assume_yes=True, confirm=confirm
        )

        confirm.assert_not_called()
        assert outcome.phase == SyncPhase.DONE

    @pytest.mark.asyncio
    async def test_progress_receives_every_operation(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        progress = Mock()
        client = FakeStoreClient(files=[synced_file("f1", "old.txt", "h")])

        await _engine(client, tmp_path, progress=progress).run(
            "store_1", ["*.txt"], assume_yes=True
        )

        progress.start.assert_called_once()
        assert progress.advance.call_count == 2
        progress.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_reporter_is_called(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        reporter = Mock()

        await _engine(FakeStoreClient(), tmp_path, reporter=reporter).run(
            "store_1", ["*.txt"], assume_yes=True, strategy="fast"
        )

        reporter.detection_mode.assert_called_once()
        reporter.change_set.assert_called_once()
        reporter.results.assert_called_once()


class TestSetupFailures:
    """Setup errors fail the run before anything is changed."""

    @pytest.mark.asyncio
    async def test_unknown_store(self, tmp_path):
        engine = _engine(FakeStoreClient(), tmp_path)

        with pytest.raises(StoreNotFoundError):
            await engine.run("unknown", ["*.txt"], assume_yes=True)

        assert engine.phase == SyncPhase.FAILED

    @pytest.mark.asyncio
    async def test_ambiguous_store_lists_candidates(self, tmp_path):
        client = FakeStoreClient(
            stores=[
                {"id": "s1", "name": "docs-en"},
                {"id": "s2", "name": "docs-de"},
            ]
        )

        with pytest.raises(StoreNotFoundError) as exc_info:
            await _engine(client, tmp_path).run("docs", ["*.txt"], assume_yes=True)

        assert exc_info.value.candidates == ["docs-en", "docs-de"]

    @pytest.mark.asyncio
    async def test_listing_failure(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient()
        client.list_error = MxbaiNetworkError("Network error: down")
        engine = _engine(client, tmp_path)

        with pytest.raises(RemoteStateError):
            await engine.run("store_1", ["*.txt"], assume_yes=True)

        assert engine.phase == SyncPhase.FAILED
        assert client.events == []

    @pytest.mark.asyncio
    async def test_revision_without_repository(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient()
        engine = _engine(client, tmp_path)

        with pytest.raises(RevisionUnavailableError):
            await engine.run(
                "store_1", ["*.txt"], from_revision="HEAD~1", assume_yes=True
            )

        assert engine.phase == SyncPhase.FAILED
        assert client.events == []

    @pytest.mark.asyncio
    async def test_failures_are_reported_not_raised(self, tmp_path):
        _write(tmp_path, "a.txt", b"X")
        client = FakeStoreClient()
        client.fail_uploads.add("a.txt")

        outcome = await _engine(client, tmp_path).run(
            "store_1", ["*.txt"], assume_yes=True
        )

        assert outcome.phase == SyncPhase.DONE
        assert outcome.has_failures
