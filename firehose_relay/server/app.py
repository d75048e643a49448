"""FastAPI application serving the relay to browser clients."""

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.staticfiles import StaticFiles

from firehose_relay.gateway import FanoutGateway, MessageFormatter
from firehose_relay.models.config import RelayConfig
from firehose_relay.monitoring.logger import StructuredLogger
from firehose_relay.stats import StatsAggregator, StatsTicker
from firehose_relay.upstream import UpstreamConnectionManager, UpstreamConnector


DEFAULT_LOCALES = ["en"]


class WebSocketSubscriber:
    """Adapts a FastAPI WebSocket to the gateway's subscriber interface."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, frame: Dict[str, Any]) -> None:
        await self.websocket.send_json(frame)


def parse_command(text: str) -> Optional[str]:
    """
    Extract a command name from an inbound frame.

    Accepts a bare word (`start`) or a JSON object (`{"type": "start"}`,
    `{"command": "start"}`).

    Returns:
        Command name, or None if the frame carries none
    """
    text = text.strip()
    if not text:
        return None
    if not text.startswith("{"):
        return text
    try:
        message = json.loads(text)
    except ValueError:
        return None
    if not isinstance(message, dict):
        return None
    command = message.get("type") or message.get("command")
    return command if isinstance(command, str) else None


def list_locales(locales_dir: str, logger: Optional[StructuredLogger] = None) -> List[str]:
    """
    List locale codes from `<code>.json` files.

    Falls back to English only when the directory cannot be read.
    """
    try:
        files = sorted(p.name for p in Path(locales_dir).iterdir())
    except OSError as e:
        if logger:
            logger.locales_failed(path=locales_dir, error=str(e))
        return list(DEFAULT_LOCALES)
    return [name[: -len(".json")] for name in files if name.endswith(".json")]


def create_app(
    config: Optional[RelayConfig] = None,
    connector: Optional[UpstreamConnector] = None,
    logger: Optional[StructuredLogger] = None,
) -> FastAPI:
    """
    Create the relay application.

    Args:
        config: Relay configuration (defaults apply when omitted)
        connector: Upstream connector override, mainly for tests
        logger: Structured logger (created from config.log_level when omitted)

    Returns:
        FastAPI application; components are exposed on `app.state`
    """
    config = config or RelayConfig()
    logger = logger or StructuredLogger(level=config.log_level)

    stats = StatsAggregator()
    gateway = FanoutGateway(stats, logger=logger, send_timeout=config.send_timeout)
    manager = UpstreamConnectionManager(
        config,
        stats,
        sink=gateway,
        connector=connector,
        logger=logger,
    )
    gateway.attach_controller(manager)
    ticker = StatsTicker(stats, gateway.broadcast, interval=config.stats_interval, logger=logger)
    formatter = MessageFormatter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.log("server_start", host=config.host, port=config.port)
        ticker.start()
        if config.autostart:
            await manager.start()
        yield
        logger.log("server_stop")
        await manager.stop()
        await ticker.stop()

    app = FastAPI(title="Bluesky Firehose Relay", lifespan=lifespan)
    app.state.config = config
    app.state.stats = stats
    app.state.gateway = gateway
    app.state.manager = manager
    app.state.ticker = ticker

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "upstream": manager.state.mode.value,
            "control": manager.state.control_state.value,
            "subscribers": gateway.subscriber_count,
        }

    @app.get("/api/status")
    async def get_status():
        return formatter.format_status(manager.status())

    @app.get("/api/stats")
    async def get_stats():
        return formatter.format_stats(gateway.latest_stats())

    @app.get("/api/locales")
    async def get_locales():
        return list_locales(config.locales_dir, logger)

    @app.websocket("/ws")
    async def subscribe(websocket: WebSocket):
        """Downstream channel: status/stats/event frames out, control commands in."""
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket)
        await gateway.add_subscriber(subscriber)
        try:
            while True:
                text = await websocket.receive_text()
                command = parse_command(text)
                if command is not None:
                    await gateway.handle_command(command)
        except WebSocketDisconnect:
            pass
        finally:
            gateway.remove_subscriber(subscriber)

    if Path(config.locales_dir).is_dir():
        app.mount("/locales", StaticFiles(directory=config.locales_dir), name="locales")
    if Path(config.static_dir).is_dir():
        app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="static")

    return app
