from __future__ import annotations

import threading
import time

import typer

from ..config.loader import load_settings
from ..config.models import RecordingType, Settings
from ..config.tools import resolve_adb_path
from ..device.bridge import AdbBridge
from ..errors import RecorderError
from ..recording.manager import RecordingManager
from ..server.http_server import RecorderHttpServer
from ..utils.logging import setup_logging

# Create a CLI application using Typer
app = typer.Typer(add_completion=False, help="Android screen recordings for UI test runs")


def _load(config: str | None, recording_type: str | None) -> Settings:
    setup_logging()
    settings = load_settings(config)
    if recording_type:
        settings.recording_type = RecordingType(recording_type)
    return settings


@app.command()
def devices(
    config: str = typer.Option(None, help="Path to the YAML configuration file"),
) -> None:
    """List serials of attached devices that are ready for adb commands."""
    settings = _load(config, None)
    try:
        bridge = AdbBridge(resolve_adb_path(settings.adb.path, "."))
    except RecorderError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2) from e
    for serial in bridge.list_devices():
        typer.echo(serial)


@app.command()
def serve(
    config: str = typer.Option(None, help="Path to the YAML configuration file"),
    host: str = typer.Option(None, help="Bind address (overrides server.host)"),
    port: int = typer.Option(None, help="Bind port (overrides server.port; 0 = free port)"),
    recording_type: str = typer.Option(None, help="native|mirror"),
) -> None:
    """
    Run the HTTP service that starts/stops recordings on request until interrupted.

    Example usage:
        adbrecord serve --config configs/adbrecord.yaml --port 8089
    """
    settings = _load(config, recording_type)
    try:
        manager = RecordingManager.from_settings(settings, project_dir=".")
    except RecorderError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2) from e

    server = RecorderHttpServer(
        host or settings.server.host,
        settings.server.port if port is None else port,
        manager,
    )
    server.start()
    typer.echo(f"Recorder listening on {server.url}")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
        manager.stop_all()


@app.command()
def record(
    device: str = typer.Argument(..., help="Device serial"),
    test_class: str = typer.Option("Manual", help="Test class used for the output directory"),
    test_method: str = typer.Option("recording", help="Test method used for the output directory"),
    duration: float = typer.Option(10.0, help="Seconds to record"),
    config: str = typer.Option(None, help="Path to the YAML configuration file"),
    recording_type: str = typer.Option(None, help="native|mirror"),
) -> None:
    """Record one device for a fixed duration and print the video path."""
    settings = _load(config, recording_type)
    try:
        manager = RecordingManager.from_settings(settings, project_dir=".")
        session = manager.start_recording(device, test_class, test_method)
        if session is None:
            typer.echo("Device API level is too low for screen recording; screenshot only")
            return
        time.sleep(duration)
        video = manager.stop_recording(device, test_class, test_method)
    except RecorderError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1) from e
    typer.echo(str(video))


if __name__ == "__main__":
    app()
