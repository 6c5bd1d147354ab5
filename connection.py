import asyncio
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from constants import SEND_QUEUE_SIZE
from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """Relay-side handle for one accepted WebSocket.

    ``send`` never waits on the network: frames go into a bounded queue that a
    writer task drains in order. A slow peer whose queue fills up loses the
    newest frames instead of stalling whoever is broadcasting. ``send`` may be
    called from any thread; frames are handed over to the loop that owns the
    socket.
    """

    def __init__(self, websocket: WebSocket, queue_size: int = SEND_QUEUE_SIZE):
        self.websocket = websocket
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def start(self):
        if self._writer is None:
            self._writer = self._loop.create_task(self._drain())

    def send(self, payload: str) -> bool:
        if not self.is_open:
            return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            return self._enqueue(payload)
        try:
            self._loop.call_soon_threadsafe(self._enqueue, payload)
        except RuntimeError as e:
            # owning loop already shut down
            logger.debug(f"Dropping frame for finished connection: {e}")
            self._closed = True
            return False
        return True

    def _enqueue(self, payload: str) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(f"Send queue full ({self._queue.maxsize}), dropping frame")
            return False
        return True

    async def _drain(self):
        while True:
            payload = await self._queue.get()
            try:
                await self.websocket.send_text(payload)
            except Exception as e:
                logger.debug(f"Error sending to WebSocket, marking connection closed: {e}")
                self._closed = True
                return

    def close(self):
        """Stop accepting frames and stop the writer. Pending frames are dropped."""
        self._closed = True
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()

    async def wait_closed(self):
        if self._writer is None:
            return
        try:
            await self._writer
        except asyncio.CancelledError:
            pass
