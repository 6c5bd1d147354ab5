import uuid
from enum import Enum
from typing import Optional, Union

from backend import RelayBackend, relay_backend
from logging_config import get_logger
from message_router import MessageRouter
from schemas.messages import ConnectionNotice

logger = get_logger(__name__)


def extract_room_id(target: Optional[str]) -> Optional[str]:
    """Return the first path segment of a request target, or None.

    ``/abc`` and ``/abc/x?y=1`` give ``abc``; ``/``, ``""`` and blank
    segments give None.
    """
    if not target:
        return None
    path = target.split("?", 1)[0]
    segments = path.split("/")
    if len(segments) < 2:
        return None
    room_id = segments[1]
    return room_id if room_id.strip() else None


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class ConnectionLifecycle:
    """Drives one connection from accept to close.

    The transport adapter calls ``activate`` once the handshake is accepted,
    ``receive`` for every frame and ``close``/``fail`` when the socket goes
    away. Cleanup runs at most once however many close or error events
    arrive.
    """

    def __init__(self, connection, target: Optional[str], backend: RelayBackend = relay_backend,
                 router: Optional[MessageRouter] = None):
        self.connection = connection
        self.backend = backend
        self.router = router or MessageRouter(backend)
        self.room_id = extract_room_id(target)
        self.client_id: Optional[str] = None
        self.state = ConnectionState.CONNECTING

    def reject(self) -> None:
        logger.error("Room ID not provided or invalid")
        self.state = ConnectionState.CLOSED

    def activate(self) -> Optional[str]:
        """Register the connection in its room and greet it. Returns the client id."""
        if self.state is not ConnectionState.CONNECTING:
            return self.client_id
        if self.room_id is None:
            self.reject()
            return None

        client_id = str(uuid.uuid4())
        self.backend.join(client_id, self.connection, self.room_id)
        self.client_id = client_id
        self.state = ConnectionState.ACTIVE
        logger.info(f"New client connected: ID={client_id}, Room={self.room_id}")
        self.connection.send(ConnectionNotice(clientId=client_id).to_json())
        return client_id

    def receive(self, raw: Union[str, bytes]) -> None:
        if self.state is not ConnectionState.ACTIVE:
            logger.debug(f"Ignoring frame on {self.state.value} connection")
            return
        self.router.dispatch(self.connection, self.client_id, raw)

    def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        if self.client_id is None:
            return
        entry = self.backend.leave(self.client_id)
        room_id = entry.room_id if entry else self.room_id
        logger.info(f"Client {self.client_id} disconnected from room {room_id}")

    def fail(self, error: BaseException) -> None:
        logger.error(f"Error on client {self.client_id}: {error}", exc_info=error)
        self.close()
