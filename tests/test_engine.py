"""Tests for the sync engine and its retry behaviour."""

import asyncio
from pathlib import Path

import pytest

from redirect_sync.config import Settings
from redirect_sync.core.engine import SyncEngine
from redirect_sync.core.fingerprint import Fingerprinter
from redirect_sync.core.state import CheckpointStore
from redirect_sync.errors import (
    ReadError,
    RemoteRejectionError,
    RemoteTransientError,
    ValidationError,
)
from redirect_sync.models import OperationKind

from conftest import FakeRewriterClient, SleepRecorder, write_keys_csv, write_redirects_csv


def fingerprint_of(settings: Settings, path: Path) -> str:
    return Fingerprinter().fingerprint_file(path, settings.account, settings.workspace)


def make_engine(
    settings: Settings,
    client: FakeRewriterClient,
    sleeper: SleepRecorder,
) -> SyncEngine:
    return SyncEngine(settings, client, sleep=sleeper)


class TestImport:
    """Import runs end to end."""

    def test_imports_everything(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        path = write_redirects_csv(tmp_path / "redirects.csv", 1200)
        client = FakeRewriterClient()

        keys = asyncio.run(make_engine(settings, client, sleeper).import_redirects(path))

        assert keys == [f"/old-{i}" for i in range(1200)]
        assert [len(k) for _, k in client.calls] == [500, 500, 200]
        assert len(client.redirects) == 1200
        assert CheckpointStore(settings.sync.checkpoint_file).entries() == []

    def test_transient_failure_is_retried_from_checkpoint(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        """
        1000 records in batches of 500: batch 1 fails once, the retry resumes
        at checkpoint 1 and each batch is applied exactly once.
        """
        path = write_redirects_csv(tmp_path / "redirects.csv", 1000)
        client = FakeRewriterClient(fail_on={1: RemoteTransientError("gateway timeout")})
        engine = make_engine(settings, client, sleeper)

        asyncio.run(engine.import_redirects(path))

        first, second, retried = client.calls
        assert first[1] == [f"/old-{i}" for i in range(500)]
        assert second == retried
        assert [keys for _, keys in client.applied] == [first[1], second[1]]
        assert sleeper.delays == [settings.retry.retry_interval_seconds]
        assert engine.history[0].attempts == 2
        assert engine.history[0].batches_committed == 2
        assert engine.store.get(OperationKind.IMPORT, fingerprint_of(settings, path)) is None

    def test_rejection_is_not_retried(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        settings.limits.max_batch_size = 2
        settings.retry.max_retries = 5
        path = write_redirects_csv(tmp_path / "redirects.csv", 6)
        client = FakeRewriterClient(fail_on={0: RemoteRejectionError("invalid route")})
        engine = make_engine(settings, client, sleeper)

        with pytest.raises(RemoteRejectionError):
            asyncio.run(engine.import_redirects(path))

        assert len(client.calls) == 1
        assert sleeper.delays == []
        checkpoint = engine.store.get(OperationKind.IMPORT, fingerprint_of(settings, path))
        assert checkpoint.counter == 0

    def test_retries_are_bounded(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        settings.retry.max_retries = 2
        path = write_redirects_csv(tmp_path / "redirects.csv", 10)
        client = FakeRewriterClient(
            fail_on={n: RemoteTransientError("down") for n in range(10)}
        )
        engine = make_engine(settings, client, sleeper)

        with pytest.raises(RemoteTransientError):
            asyncio.run(engine.import_redirects(path))

        # First attempt plus two retries
        assert len(client.calls) == 3
        assert len(sleeper.delays) == 2
        assert engine.history[0].attempts == 3

    def test_new_engine_gets_fresh_retry_budget_and_resumes(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        """A later invocation resumes where an aborted one stopped."""
        settings.limits.max_batch_size = 2
        settings.retry.max_retries = 0
        path = write_redirects_csv(tmp_path / "redirects.csv", 6)

        client = FakeRewriterClient(fail_on={2: RemoteTransientError("down")})
        with pytest.raises(RemoteTransientError):
            asyncio.run(make_engine(settings, client, sleeper).import_redirects(path))
        assert len(client.calls) == 3

        client.calls.clear()
        client.applied.clear()
        asyncio.run(make_engine(settings, client, sleeper).import_redirects(path))

        assert [keys for _, keys in client.calls] == [["/old-4", "/old-5"]]
        assert len(client.redirects) == 6

    def test_read_error_is_fatal(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        client = FakeRewriterClient()
        with pytest.raises(ReadError):
            asyncio.run(
                make_engine(settings, client, sleeper).import_redirects(tmp_path / "nope.csv")
            )
        assert client.calls == []
        assert sleeper.delays == []

    def test_validation_error_before_any_submission(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        path = tmp_path / "bad.csv"
        path.write_text("from;to;type\n/a;/b;PERMANENT\n/c;/d;SOMETIMES\n")
        client = FakeRewriterClient()

        with pytest.raises(ValidationError):
            asyncio.run(make_engine(settings, client, sleeper).import_redirects(path))

        assert client.calls == []
        assert CheckpointStore(settings.sync.checkpoint_file).entries() == []


class TestDelete:
    """Delete runs."""

    def test_deletes_listed_paths(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        client = FakeRewriterClient(existing=["/a", "/b", "/c"])
        path = tmp_path / "delete.csv"
        path.write_text("from\n/a\n/c\n")

        deleted = asyncio.run(make_engine(settings, client, sleeper).delete_redirects(path))

        assert deleted == ["/a", "/c"]
        assert list(client.redirects) == ["/b"]
        assert client.calls == [("delete", ["/a", "/c"])]

    def test_delete_checkpoint_is_separate_from_import(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        path = tmp_path / "delete.csv"
        path.write_text("from\n/a\n")
        store = CheckpointStore(settings.sync.checkpoint_file)
        store.save(OperationKind.IMPORT, fingerprint_of(settings, path), 1)
        client = FakeRewriterClient(existing=["/a"])

        asyncio.run(make_engine(settings, client, sleeper).delete_redirects(path))

        # Delete ran from the start despite the import checkpoint
        assert client.calls == [("delete", ["/a"])]
        assert store.get(OperationKind.IMPORT, fingerprint_of(settings, path)) is not None


class TestReset:
    """Import with cleanup of stale redirects."""

    def test_reset_deletes_stale_redirects(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        client = FakeRewriterClient(existing=["a", "b", "c"])
        path = write_keys_csv(tmp_path / "redirects.csv", ["b", "c", "d"])
        engine = make_engine(settings, client, sleeper)

        asyncio.run(engine.import_redirects(path, reset=True))

        assert sorted(client.redirects) == ["b", "c", "d"]
        assert [c for c in client.calls if c[0] == "delete"] == [("delete", ["a"])]
        assert [s.operation for s in engine.history] == ["imports", "deletes"]
        assert CheckpointStore(settings.sync.checkpoint_file).entries() == []
        assert not list(tmp_path.glob(".redirects_to_delete_*"))

    def test_reset_with_explicit_previous_keys(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        client = FakeRewriterClient()
        path = write_keys_csv(tmp_path / "redirects.csv", ["b"])

        asyncio.run(
            make_engine(settings, client, sleeper).import_redirects(
                path, reset=True, previous_keys=["a", "b"]
            )
        )

        assert client.calls == [("import", ["b"]), ("delete", ["a"])]

    def test_no_cleanup_when_import_fails(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        client = FakeRewriterClient(
            existing=["a"], fail_on={0: RemoteRejectionError("bad")}
        )
        path = write_keys_csv(tmp_path / "redirects.csv", ["b"])

        with pytest.raises(RemoteRejectionError):
            asyncio.run(make_engine(settings, client, sleeper).import_redirects(path, reset=True))

        assert [c[0] for c in client.calls] == ["import"]
        assert "a" in client.redirects

    def test_without_reset_nothing_is_deleted(
        self, settings: Settings, sleeper: SleepRecorder, tmp_path: Path
    ) -> None:
        client = FakeRewriterClient(existing=["a"])
        path = write_keys_csv(tmp_path / "redirects.csv", ["b"])

        asyncio.run(make_engine(settings, client, sleeper).import_redirects(path))

        assert sorted(client.redirects) == ["a", "b"]
