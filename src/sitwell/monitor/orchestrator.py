"""Periodic, single-flight posture checks."""

from __future__ import annotations

import asyncio
import contextvars
import uuid
from collections.abc import Callable
from datetime import datetime

from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from sitwell.analysis.client import AnalysisClient
from sitwell.analysis.prompt import POSTURE_PROMPT
from sitwell.analysis.verdict import extract_verdict
from sitwell.errors import ExtractionError, ServiceError, ServiceErrorKind
from sitwell.feedback.base import FeedbackSink
from sitwell.frames.base import FrameSource
from sitwell.monitor.clock import Clock, SystemClock
from sitwell.types import AnalysisRequest, MonitorStatus, Verdict

FRAME_UNAVAILABLE = "frame unavailable"
MISSING_CREDENTIAL = "API credential is not configured (set GEMINI_API_KEY or SITWELL_API_KEY)."

StatusListener = Callable[[MonitorStatus], None]

_current_check: contextvars.ContextVar[str | None] = contextvars.ContextVar("sitwell_check", default=None)


def current_check() -> str | None:
    """Id of the check running in the current task, if any."""
    return _current_check.get()


class PostureMonitor:
    """Schedule posture checks and route their verdicts to a feedback sink.

    At most one analysis request is in flight: a tick or manual trigger that
    finds the monitor busy is dropped. ``stop()`` only cancels future ticks;
    a check already running still delivers its verdict.
    """

    def __init__(
        self,
        frames: FrameSource,
        client: AnalysisClient,
        sink: FeedbackSink,
        *,
        prompt: str = POSTURE_PROMPT,
        clock: Clock | None = None,
        on_status: StatusListener | None = None,
    ) -> None:
        self._frames = frames
        self._client = client
        self._sink = sink
        self._prompt = prompt
        self._clock = clock or SystemClock()
        self._on_status = on_status
        self._busy = False
        self._schedule: asyncio.Task[None] | None = None
        self._checks: set[asyncio.Task[Verdict | None]] = set()

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def running(self) -> bool:
        return self._schedule is not None and not self._schedule.done()

    def start(self, interval_seconds: float) -> None:
        """Check now, then every ``interval_seconds`` from the previous scheduled tick."""
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds!r}")
        if self.running:
            self._cancel_schedule()

        start_date = self._clock.now()
        trigger = IntervalTrigger(seconds=interval_seconds, start_date=start_date, timezone="UTC")
        self._schedule = asyncio.get_running_loop().create_task(self._run_schedule(trigger, start_date))
        logger.info("monitor.start interval_seconds={}", interval_seconds)
        self._publish_status(MonitorStatus.MONITORING)

    def stop(self) -> None:
        if not self.running:
            return
        self._cancel_schedule()
        logger.info("monitor.stop in_flight={}", self._busy)
        self._publish_status(MonitorStatus.PAUSED)

    async def wait_idle(self) -> None:
        """Wait for checks that are already in flight."""
        if self._checks:
            await asyncio.gather(*self._checks, return_exceptions=True)

    def _cancel_schedule(self) -> None:
        if self._schedule is not None:
            self._schedule.cancel()
            self._schedule = None

    async def _run_schedule(self, trigger: IntervalTrigger, start_date: datetime) -> None:
        fire_time: datetime | None = start_date
        while fire_time is not None:
            delay = (fire_time - self._clock.now()).total_seconds()
            if delay > 0:
                await self._clock.sleep(delay)
            self._on_tick()
            fire_time = self._next_fire_time(trigger, fire_time)

    def _next_fire_time(self, trigger: IntervalTrigger, previous: datetime) -> datetime | None:
        """Next tick on the fixed-rate grid, coalescing ticks that are already overdue."""
        now = self._clock.now()
        fire_time = trigger.get_next_fire_time(previous, now)
        missed = 0
        while fire_time is not None and fire_time <= now:
            missed += 1
            fire_time = trigger.get_next_fire_time(fire_time, now)
        if missed:
            logger.warning("monitor.tick.coalesced missed={}", missed)
        return fire_time

    def _on_tick(self) -> None:
        if self._busy:
            logger.debug("monitor.tick.dropped reason=busy")
            return
        task = asyncio.get_running_loop().create_task(self.run_one_check())
        self._checks.add(task)
        task.add_done_callback(self._checks.discard)

    async def run_one_check(self) -> Verdict | None:
        """Run one capture -> analyze -> extract -> deliver cycle.

        Returns the delivered verdict, or ``None`` when another check is in flight.
        """
        if self._busy:
            return None
        self._busy = True
        token = _current_check.set(uuid.uuid4().hex[:8])
        try:
            logger.info("monitor.check.start")
            verdict = await self._evaluate()
            self._deliver(verdict)
            self._publish_status(MonitorStatus.COMPLETE)
            return verdict
        finally:
            self._busy = False
            _current_check.reset(token)

    async def _evaluate(self) -> Verdict:
        if not self._client.configured:
            logger.error("monitor.check.skipped reason={}", ServiceErrorKind.MISSING_CREDENTIAL)
            return Verdict.error(MISSING_CREDENTIAL)

        self._publish_status(MonitorStatus.CAPTURING)
        try:
            frame = self._frames.capture()
        except Exception:
            logger.exception("monitor.capture.error")
            frame = None
        if frame is None:
            logger.warning("monitor.check.skipped reason=frame_unavailable")
            return Verdict.error(FRAME_UNAVAILABLE)

        request = AnalysisRequest(frame=frame, prompt=self._prompt)
        self._publish_status(MonitorStatus.ANALYZING)
        try:
            output = await self._client.analyze(request.frame, request.prompt)
            verdict = extract_verdict(output)
        except ServiceError as exc:
            logger.error("monitor.check.service_error kind={} detail={}", exc.kind, exc.detail)
            return Verdict.error(str(exc))
        except ExtractionError as exc:
            logger.error("monitor.check.extraction_error reason={} detail={}", exc.reason, exc.detail)
            return Verdict.error(str(exc))
        except Exception as exc:
            logger.exception("monitor.check.error")
            return Verdict.error(str(exc) or "Unknown error during analysis.")

        logger.info("monitor.check.verdict posture={} reason={}", verdict.posture, verdict.reason)
        return verdict

    def _deliver(self, verdict: Verdict) -> None:
        try:
            self._sink.deliver(verdict)
        except Exception:
            logger.exception("monitor.deliver.error")

    def _publish_status(self, status: MonitorStatus) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(status)
        except Exception:
            logger.exception("monitor.status.error status={}", status)
