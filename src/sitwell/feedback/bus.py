"""In-memory channel carrying verdicts from the monitor to its host."""

from __future__ import annotations

import asyncio

from loguru import logger

from sitwell.feedback.base import FeedbackSink
from sitwell.types import Verdict


class VerdictChannel:
    """Async queue of verdicts; the monitor delivers, the host consumes."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Verdict | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, verdict: Verdict) -> None:
        if self._closed:
            logger.warning("verdict.channel.closed dropped posture={}", verdict.posture)
            return
        self._queue.put_nowait(verdict)

    def close(self) -> None:
        """Stop consumers once the already queued verdicts are drained."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def next_verdict(self, timeout_seconds: float | None = None) -> Verdict | None:
        """Next verdict, or ``None`` on timeout or once the channel is closed."""
        if timeout_seconds is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout_seconds)
        except TimeoutError:
            return None

    async def relay(self, sink: FeedbackSink) -> int:
        """Forward verdicts to ``sink`` until the channel is closed; returns the count."""
        forwarded = 0
        while True:
            verdict = await self._queue.get()
            if verdict is None:
                return forwarded
            try:
                sink.deliver(verdict)
            except Exception:
                logger.exception("verdict.channel.relay.error")
            forwarded += 1
