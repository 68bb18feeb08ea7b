from __future__ import annotations

import asyncio
import heapq
import itertools
from datetime import UTC, datetime, timedelta

import pytest


async def settle(rounds: int = 20) -> None:
    """Let ready tasks run without advancing any clock."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class VirtualClock:
    """Clock whose sleepers only wake when a test advances time."""

    def __init__(self) -> None:
        self._now = datetime(2025, 1, 1, 9, 0, 0, tzinfo=UTC)
        self._sleepers: list[tuple[datetime, int, asyncio.Future[None]]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now + timedelta(seconds=seconds), next(self._seq), future))
        await future

    async def advance(self, seconds: float) -> None:
        target = self._now + timedelta(seconds=seconds)
        await settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            wake_at, _, future = heapq.heappop(self._sleepers)
            self._now = wake_at
            if not future.done():
                future.set_result(None)
            await settle()
        self._now = target
        await settle()

    async def jump(self, seconds: float) -> None:
        """Move time forward in one step, the way a resume from suspend does."""
        self._now += timedelta(seconds=seconds)
        while self._sleepers and self._sleepers[0][0] <= self._now:
            _, _, future = heapq.heappop(self._sleepers)
            if not future.done():
                future.set_result(None)
        await settle()


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("SITWELL_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
