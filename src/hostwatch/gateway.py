"""
WebSocket streaming of the latest snapshot.

Every connection owns a push loop and a receive task. The loop pushes
``HistoryStore.latest()`` once per push interval, independent of the
collection cadence; the receive task accepts and discards client frames
and ends the connection when the client goes away.
"""

import asyncio
import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from hostwatch.config import AgentConfig
from hostwatch.history import HistoryStore
from hostwatch.models import SerializationError, serialize_snapshot
from hostwatch.scheduler import CollectionScheduler, start_all, stop_all

logger = logging.getLogger(__name__)

# "Try Again Later", sent when the connection limit is reached
CLOSE_TRY_AGAIN_LATER = 1013


class StreamingGateway:
    """Pushes the freshest snapshot to every open WebSocket."""

    def __init__(
        self,
        history: HistoryStore,
        push_interval: float = 1.0,
        max_connections: int = 100,
    ) -> None:
        self._history = history
        self._push_interval = push_interval
        self._max_connections = max_connections
        self._active = 0

    @property
    def active_connections(self) -> int:
        return self._active

    async def handle(self, websocket: WebSocket) -> None:
        """Serve one connection until the client leaves or a push fails."""
        if self._active >= self._max_connections:
            logger.warning(
                "Rejecting WebSocket from %s: %d connections open",
                _client(websocket),
                self._active,
            )
            # A close before accept() reaches the client as HTTP 403, not a close frame
            await websocket.accept()
            await websocket.close(code=CLOSE_TRY_AGAIN_LATER)
            return

        self._active += 1
        try:
            await websocket.accept()
            logger.info("WebSocket connected: %s", _client(websocket))
            await self._stream(websocket)
        finally:
            self._active -= 1
            logger.info("WebSocket closed: %s", _client(websocket))

    async def _stream(self, websocket: WebSocket) -> None:
        receiver = asyncio.create_task(self._discard_inbound(websocket))
        try:
            while True:
                if not await self._push_latest(websocket):
                    break
                # Timer races the receive task; a close wakes us immediately
                done, _ = await asyncio.wait({receiver}, timeout=self._push_interval)
                if done:
                    break
        finally:
            if not receiver.done():
                receiver.cancel()
            (outcome,) = await asyncio.gather(receiver, return_exceptions=True)
            if isinstance(outcome, Exception):
                logger.debug("Receive loop for %s ended with %r", _client(websocket), outcome)
            if (
                websocket.application_state == WebSocketState.CONNECTED
                and websocket.client_state == WebSocketState.CONNECTED
            ):
                try:
                    await websocket.close()
                except (RuntimeError, OSError):
                    # Peer already gone
                    pass

    async def _push_latest(self, websocket: WebSocket) -> bool:
        """
        Send the latest snapshot, if any.

        Returns False when the transport failed and the connection must end.
        A snapshot that cannot be serialized is skipped.
        """
        snapshot = self._history.latest()
        if snapshot is None:
            return True
        try:
            payload = serialize_snapshot(snapshot)
        except SerializationError:
            logger.exception("Error serializing metrics")
            return True
        try:
            await websocket.send_text(payload)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.warning("Error sending WebSocket message to %s: %s", _client(websocket), exc)
            return False
        return True

    async def _discard_inbound(self, websocket: WebSocket) -> None:
        """Read client frames until a disconnect; their content is ignored."""
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return


def _client(websocket: WebSocket) -> str:
    if websocket.client is None:
        return "unknown"
    return f"{websocket.client.host}:{websocket.client.port}"


def create_app(
    config: AgentConfig,
    history: HistoryStore,
    schedulers: Sequence[CollectionScheduler] = (),
) -> FastAPI:
    """
    Create the FastAPI application.

    The schedulers are started when the application starts up and stopped
    when it shuts down.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        start_all(schedulers)
        logger.info(
            "Monitoring agent running on http://%s:%d (%d collection unit(s))",
            config.host,
            config.port,
            len(schedulers),
        )
        yield
        stop_all(schedulers)
        logger.info("Monitoring agent stopped")

    gateway = StreamingGateway(
        history,
        push_interval=config.push_interval,
        max_connections=config.max_connections,
    )
    app = FastAPI(title="hostwatch", lifespan=lifespan)
    app.state.gateway = gateway
    app.state.history = history

    @app.get("/health")
    async def health() -> dict:
        latest = history.latest()
        return {
            "status": "ok",
            "snapshots": len(history),
            "capacity": history.capacity,
            "latest_timestamp": latest.timestamp if latest else None,
            "connections": gateway.active_connections,
        }

    @app.websocket("/ws")
    async def stream(websocket: WebSocket) -> None:
        await gateway.handle(websocket)

    return app
