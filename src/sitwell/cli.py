"""sitwell command line interface."""

from __future__ import annotations

import asyncio
import json
from enum import StrEnum
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console

from sitwell.analysis.client import GeminiClient
from sitwell.config import Settings, load_settings
from sitwell.errors import ConfigurationError, FrameSourceError
from sitwell.feedback import ConsoleFeedback, FeedbackSink, JsonLinesFeedback, VerdictChannel
from sitwell.frames import FrameSource, StillImageFrameSource
from sitwell.logging_utils import configure_logging
from sitwell.monitor import PostureMonitor
from sitwell.monitor.orchestrator import StatusListener
from sitwell.types import Posture, Verdict

app = typer.Typer(name="sitwell", help="Webcam posture monitor backed by a vision model.", add_completion=False)


class OutputFormat(StrEnum):
    CONSOLE = "console"
    JSON = "json"


def _load_settings(env_file: Path | None, **overrides: Any) -> Settings:
    try:
        return load_settings(env_file, **overrides)
    except ConfigurationError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(2) from exc


def _build_sink(output: OutputFormat, settings: Settings) -> tuple[FeedbackSink, StatusListener | None]:
    if output is OutputFormat.JSON:
        return JsonLinesFeedback(), None
    console_sink = ConsoleFeedback(display_seconds=settings.feedback_display_seconds)
    return console_sink, console_sink.show_status


def _open_camera(settings: Settings):
    from sitwell.frames.camera import CameraFrameSource

    source = CameraFrameSource.from_settings(settings)
    try:
        return source.open()
    except FrameSourceError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(1) from exc


def _warn_missing_credential(settings: Settings) -> None:
    if not settings.has_credential:
        logger.warning("GEMINI_API_KEY missing from environment and .env; every check will report an error.")


async def run_watch(
    settings: Settings,
    frames: FrameSource,
    sink: FeedbackSink,
    *,
    duration: float | None = None,
    on_status: StatusListener | None = None,
    client: GeminiClient | None = None,
) -> int:
    """Monitor until cancelled or ``duration`` elapses; returns the number of verdicts shown."""

    channel = VerdictChannel()
    async with client or GeminiClient.from_settings(settings) as active_client:
        monitor = PostureMonitor(frames, active_client, channel, on_status=on_status)
        relay = asyncio.create_task(channel.relay(sink))
        monitor.start(settings.check_interval_seconds)
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            monitor.stop()
            await monitor.wait_idle()
            channel.close()
            forwarded = await relay
    return forwarded


async def run_check(settings: Settings, frames: FrameSource, sink: FeedbackSink) -> Verdict | None:
    async with GeminiClient.from_settings(settings) as client:
        monitor = PostureMonitor(frames, client, sink)
        return await monitor.run_one_check()


@app.command()
def watch(
    interval: float | None = typer.Option(None, "--interval", "-i", min=0.1, help="Seconds between checks"),
    camera: int | None = typer.Option(None, "--camera", "-c", min=0, help="Camera index"),
    duration: float | None = typer.Option(None, "--duration", min=0, help="Stop after this many seconds"),
    output: OutputFormat = typer.Option(OutputFormat.CONSOLE, "--output", "-o", help="Verdict output format"),  # noqa: B008
    env_file: Path | None = typer.Option(None, "--env-file", help="Alternative .env file"),  # noqa: B008
) -> None:
    """Check posture periodically until interrupted."""

    settings = _load_settings(env_file, check_interval_seconds=interval, camera_index=camera)
    configure_logging(profile="console", level=settings.log_level)
    _warn_missing_credential(settings)
    sink, on_status = _build_sink(output, settings)

    source = _open_camera(settings)
    try:
        asyncio.run(run_watch(settings, source, sink, duration=duration, on_status=on_status))
    except KeyboardInterrupt:
        logger.info("watch.interrupted")
    finally:
        if isinstance(sink, ConsoleFeedback):
            sink.close()
        source.release()


@app.command()
def check(
    image: Path | None = typer.Option(  # noqa: B008
        None, "--image", exists=True, dir_okay=False, readable=True, help="Analyze this image instead of the camera"
    ),
    camera: int | None = typer.Option(None, "--camera", "-c", min=0, help="Camera index"),
    output: OutputFormat = typer.Option(OutputFormat.CONSOLE, "--output", "-o", help="Verdict output format"),  # noqa: B008
    env_file: Path | None = typer.Option(None, "--env-file", help="Alternative .env file"),  # noqa: B008
) -> None:
    """Run a single posture check and exit (status 1 on an error verdict)."""

    settings = _load_settings(env_file, camera_index=camera)
    configure_logging(profile="default", level=settings.log_level)
    _warn_missing_credential(settings)
    sink, _ = _build_sink(output, settings)

    if image is not None:
        verdict = asyncio.run(run_check(settings, StillImageFrameSource(image), sink))
    else:
        source = _open_camera(settings)
        try:
            verdict = asyncio.run(run_check(settings, source, sink))
        finally:
            source.release()

    if verdict is None or verdict.kind is Posture.ERROR:
        raise typer.Exit(1)


@app.command("config")
def show_config(
    env_file: Path | None = typer.Option(None, "--env-file", help="Alternative .env file"),  # noqa: B008
) -> None:
    """Print the resolved settings with the credential masked."""

    settings = _load_settings(env_file)
    Console().print_json(json.dumps(settings.redacted()))


if __name__ == "__main__":
    app()
