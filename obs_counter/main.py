"""
main.py — obs-counter plugin entrypoint.

Bootstraps:
  1. Config loading
  2. Connection registry (OBS sessions)
  3. Device host bridge
  4. Display notifier + health monitor
  5. Counter action handlers
  6. Optional FastAPI status server (uvicorn)

CLI:
  python run.py start -port 28196 -pluginUUID ... -registerEvent registerPlugin -info '{...}'
  python run.py check --url ws://localhost:4455 --password secret
  python run.py init-config
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from functools import partial
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.logging import RichHandler

from obs_counter import __version__
from obs_counter.api import create_app
from obs_counter.config import Settings, reload_settings
from obs_counter.core import (
    ConfigurationError,
    ConnectionRegistry,
    HealthMonitor,
    Session,
    SessionStatus,
    TransportError,
    open_websocket,
)
from obs_counter.core import protocol
from obs_counter.display import DisplayNotifier
from obs_counter.host import CounterAction, HostBridge

console = Console(stderr=True)
app = typer.Typer(name="obs-counter", help="Counter buttons mirrored into OBS text sources")

log = logging.getLogger("obs_counter")


def setup_logging(level: str = "info", log_file: Optional[Path] = None) -> None:
    handlers: list[logging.Handler] = [
        RichHandler(console=console, rich_tracebacks=True, show_path=False)
    ]
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handlers.append(file_handler)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )
    # websockets logs every frame at debug
    for name in ("websockets", "websockets.client", "websockets.protocol"):
        logging.getLogger(name).setLevel(logging.WARNING)


async def build_and_run(settings: Settings) -> None:
    # 1. OBS sessions
    registry = ConnectionRegistry(
        transport_factory=partial(open_websocket, open_timeout=settings.obs.open_timeout)
    )

    # 2. Device host
    bridge = HostBridge(
        settings.host.url,
        settings.host.plugin_uuid,
        register_event=settings.host.register_event,
        action_uuid=settings.host.action_uuid,
    )

    # 3. Display fan-out + health sweep
    notifier = DisplayNotifier(registry, bridge, unknown_indicator=settings.obs.unknown_indicator)
    notifier.attach()
    monitor = HealthMonitor(registry, interval=settings.obs.health_interval)
    monitor.attach()

    # 4. Counter action
    action = CounterAction(
        registry,
        notifier,
        bridge,
        defaults=settings.obs.context_defaults(),
        long_press_sec=settings.host.long_press_sec,
    )
    action.register(bridge)

    # 5. Status API
    server: Optional[uvicorn.Server] = None
    server_task: Optional[asyncio.Task] = None
    if settings.api.enabled:
        config = uvicorn.Config(
            create_app(registry, notifier, monitor),
            host=settings.api.host,
            port=settings.api.port,
            log_level=settings.api.log_level,
            loop="asyncio",
        )
        server = uvicorn.Server(config)
        server_task = asyncio.create_task(server.serve())
        log.info(f"Status API on http://{settings.api.host}:{settings.api.port}")

    loop = asyncio.get_running_loop()
    bridge_task = asyncio.create_task(bridge.run())

    def shutdown():
        log.info("Shutdown signal received.")
        bridge_task.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown)
        except NotImplementedError:
            pass  # Windows

    try:
        await bridge_task
    except asyncio.CancelledError:
        pass
    except TransportError as e:
        log.error(f"Device host unreachable: {e}")
    finally:
        monitor.stop()
        registry.close_all()
        if server is not None:
            server.should_exit = True
            await server_task
        # let the OBS close frames go out
        await asyncio.sleep(0.25)


# ──────────────────────────────────────────────────────────────────────────────
# CLI commands
# ──────────────────────────────────────────────────────────────────────────────

@app.command()
def start(
    port: Optional[int] = typer.Option(None, "--port", "-port", help="Device host WebSocket port"),
    plugin_uuid: Optional[str] = typer.Option(None, "--plugin-uuid", "-pluginUUID", help="Plugin UUID"),
    register_event: Optional[str] = typer.Option(None, "--register-event", "-registerEvent", help="Registration event"),
    info: Optional[str] = typer.Option(None, "--info", "-info", help="Host info JSON (logged only)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """Run the plugin: connect to the device host and manage OBS sessions."""
    try:
        settings = reload_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=2)
    if port is not None:
        settings.host.port = port
    if plugin_uuid:
        settings.host.plugin_uuid = plugin_uuid
    if register_event:
        settings.host.register_event = register_event

    setup_logging(settings.api.log_level, settings.api.log_file)
    log.info(f"obs-counter v{__version__} starting")
    if info:
        log.debug(f"Host info: {info}")

    if settings.host.port is None:
        log.error("Device host port is not set (-port)")
        raise typer.Exit(code=2)
    asyncio.run(build_and_run(settings))


@app.command("init-config")
def init_config(
    output: Path = typer.Option(Path("config.yaml"), "--output", "-o"),
):
    """Generate a default config.yaml."""
    s = Settings.load()
    s.to_yaml(output)
    console.print(f"[green]✓[/green] Config written to [bold]{output}[/bold]")


@app.command("check")
def check_obs(
    url: str = typer.Option("ws://localhost:4455", "--url"),
    password: str = typer.Option("", "--password"),
    source: str = typer.Option("CounterText", "--source", help="OBS text input to write to"),
    text: Optional[str] = typer.Option(None, "--set", help="Write this text to the source once authenticated"),
    timeout: float = typer.Option(5.0, "--timeout"),
):
    """Test OBS WebSocket connectivity and authentication."""
    setup_logging("warning")

    async def _check() -> bool:
        finished = asyncio.Event()

        def on_status(_session: Session, status: SessionStatus) -> None:
            if status in (SessionStatus.AUTHENTICATED, SessionStatus.CLOSED):
                finished.set()

        session = Session(
            "check",
            url,
            source,
            password,
            transport_factory=partial(open_websocket, open_timeout=timeout),
            on_status=on_status,
        ).start()
        try:
            await asyncio.wait_for(finished.wait(), timeout)
        except asyncio.TimeoutError:
            pass

        ok = session.is_authenticated
        if ok and text is not None:
            session.send(protocol.set_input_text("check-1", source, text))
            await asyncio.sleep(0.25)
        status, error = session.status, session.last_error
        session.close()
        await asyncio.sleep(0)

        if ok:
            console.print(f"[green]✓ Authenticated with OBS at {url}[/green]")
            if session.handshake.rpc_version is not None:
                console.print(f"  RPC version: {session.handshake.rpc_version}")
            if text is not None:
                console.print(f"  '{source}' → {text!r}")
        else:
            console.print(f"[red]✗ Could not authenticate with OBS at {url}[/red] ({status.value})")
            if error:
                console.print(f"  [dim]{error}[/dim]")
        return ok

    if not asyncio.run(_check()):
        sys.exit(1)


if __name__ == "__main__":
    app()
