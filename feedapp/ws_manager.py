from typing import Set
from fastapi import WebSocket
from prometheus_client import Counter, Gauge
import asyncio
import logging

logger = logging.getLogger(__name__)

LIVE_CLIENTS = Gauge('feedapp_live_clients', 'Websocket clients connected to the post feed')
EVENTS_EMITTED = Counter('feedapp_events_emitted_total', 'Post change events broadcast', ['action'])

class ChangeNotifier:
    """Fan-out of post change events to every connected websocket.

    Delivery is at-most-once: no acknowledgment, retry or persistence.
    A client that fails a send is dropped without affecting the others.
    """

    def __init__(self):
        self.connections: Set[WebSocket] = set()
        self.started = False
        self._pending: Set[asyncio.Task] = set()

    def start(self):
        self.started = True

    async def stop(self):
        await self.flush()
        for ws in list(self.connections):
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f'closing websocket failed: {e}')
        self.connections.clear()
        LIVE_CLIENTS.set(0)
        self.started = False

    async def connect(self, websocket: WebSocket):
        self.connections.add(websocket)
        try:
            await websocket.accept()
        except Exception:
            self.connections.discard(websocket)
            raise
        LIVE_CLIENTS.set(len(self.connections))
        logger.info(f'live client connected ({len(self.connections)} total)')

    def disconnect(self, websocket: WebSocket):
        if websocket in self.connections:
            self.connections.discard(websocket)
            LIVE_CLIENTS.set(len(self.connections))
            logger.info(f'live client disconnected ({len(self.connections)} total)')

    def emit(self, event: dict):
        """Push event to all connected clients without waiting for delivery"""
        if not self.started:
            raise RuntimeError('change notifier used before it was started')
        EVENTS_EMITTED.labels(action=event.get('action', 'unknown')).inc()
        for ws in list(self.connections):
            task = asyncio.create_task(self._send(ws, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _send(self, websocket: WebSocket, event: dict):
        try:
            await websocket.send_json(event)
        except Exception as e:
            logger.warning(f'dropping live client after failed send: {e}')
            self.disconnect(websocket)

    async def flush(self):
        """Wait for in-flight sends to settle"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
