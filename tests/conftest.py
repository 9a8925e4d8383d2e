"""Shared fixtures for Redirect Sync tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import pytest

from redirect_sync.config import Limits, RetryOptions, Settings, SyncOptions
from redirect_sync.models import Redirect, RedirectPath


class FakeRewriterClient:
    """
    In-memory stand-in for RewriterClient.

    ``fail_on`` maps a submission number (0-based, counting imports and
    deletes together) to the exception that submission raises. Each entry
    is used once, so a retried submission succeeds.
    """

    def __init__(
        self,
        existing: Sequence[str] = (),
        fail_on: dict[int, Exception] | None = None,
    ) -> None:
        self.redirects: dict[str, dict[str, Any]] = {
            key: {"from": key, "to": "/", "type": "PERMANENT"} for key in existing
        }
        self.fail_on = dict(fail_on or {})
        self.calls: list[tuple[str, list[str]]] = []
        self.applied: list[tuple[str, list[str]]] = []
        self.closed = False

    def _next(self, operation: str, keys: list[str]) -> None:
        number = len(self.calls)
        self.calls.append((operation, keys))
        error = self.fail_on.pop(number, None)
        if error is not None:
            raise error
        self.applied.append((operation, keys))

    async def import_redirects(self, redirects: Sequence[Redirect]) -> None:
        self._next("import", [r.key for r in redirects])
        for redirect in redirects:
            self.redirects[redirect.key] = redirect.to_payload()

    async def delete_redirects(self, paths: Sequence[RedirectPath]) -> None:
        self._next("delete", [p.key for p in paths])
        for path in paths:
            self.redirects.pop(path.key, None)

    async def list_redirect_keys(self) -> list[str]:
        return list(self.redirects)

    async def __aenter__(self) -> "FakeRewriterClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.closed = True


class SleepRecorder:
    """Replacement for asyncio.sleep that only records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def write_redirects_csv(path: Path, count: int, prefix: str = "/old") -> Path:
    """Write ``count`` valid redirect rows."""
    lines = ["from;to;type;endDate"]
    for i in range(count):
        lines.append(f"{prefix}-{i};/new-{i};PERMANENT;")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_keys_csv(path: Path, keys: Sequence[str]) -> Path:
    """Write an import file with the given ``from`` paths."""
    lines = ["from;to;type"]
    lines.extend(f"{key};/target;TEMPORARY" for key in keys)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing all state at a temp directory."""
    return Settings(
        account="storecompany",
        workspace="master",
        api_url="https://rewriter.test/graphql",
        auth_token="test-token",
        limits=Limits(max_batch_size=500),
        retry=RetryOptions(max_retries=3, retry_interval_seconds=5),
        sync=SyncOptions(
            checkpoint_file=tmp_path / "checkpoint.json",
            workdir=tmp_path,
        ),
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
