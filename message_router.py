import json
from typing import Optional, Union

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from backend import RelayBackend, fan_out, relay_backend
from constants import RELAY_SIGNALS
from logging_config import get_logger
from schemas.messages import (
    ChatMessage,
    ChatRelay,
    CreatedReply,
    ErrorNotice,
    FileTransferRelay,
    JoinedReply,
    RoomCreatedNotice,
    RoomJoinedNotice,
    RoomMessage,
    SignalRelay,
)

logger = get_logger(__name__)


class MessageRouter:
    """Turns inbound frames into registry changes, replies and broadcasts.

    Bad input never raises out of ``dispatch``: unparseable frames, frames
    missing required fields and unknown types are logged and dropped.
    """

    def __init__(self, backend: RelayBackend = relay_backend, relay_signals: bool = RELAY_SIGNALS):
        self.backend = backend
        self.relay_signals = relay_signals
        self._handlers = {
            "create_room": self.create_room,
            "join_room": self.join_room,
            "signal": self.signal,
            "chat": self.chat,
            "file_transfer": self.file_transfer,
        }

    def dispatch(self, connection, client_id: str, raw: Union[str, bytes]) -> None:
        logger.debug(f"Message from client {client_id}: {raw!r}")
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as e:
            logger.error(f"Error parsing message from client {client_id}: {e}")
            return
        if not isinstance(data, dict):
            logger.error(f"Error parsing message from client {client_id}: expected a JSON object")
            return

        message_type = data.get("type")
        handler = self._handlers.get(message_type) if isinstance(message_type, str) else None
        if handler is None:
            logger.warning(f"Unknown message type: {message_type}")
            return
        try:
            handler(connection, client_id, data)
        except (PydanticSerializationError, RecursionError) as e:
            logger.warning(f"Dropping {message_type} message from client {client_id}: {e}")

    def _validate(self, model, client_id: str, data: dict):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid {data.get('type')} message from client {client_id}: {e.error_count()} error(s)")
            return None

    def _join_notice(self, client_id: str) -> str:
        return RoomJoinedNotice(clientId=client_id, message=f"{client_id} has joined the room").to_json()

    def create_room(self, connection, client_id: str, data: dict) -> None:
        message = self._validate(RoomMessage, client_id, data)
        if message is None:
            return
        notice = self._join_notice(client_id)
        peers = self.backend.create(client_id, connection, message.roomId)
        if peers is None:
            connection.send(ErrorNotice(message="Room already exists").to_json())
            return
        fan_out(peers, connection, notice)
        connection.send(RoomCreatedNotice(message=f"Room {message.roomId} created successfully").to_json())
        connection.send(CreatedReply().to_json())

    def join_room(self, connection, client_id: str, data: dict) -> None:
        message = self._validate(RoomMessage, client_id, data)
        if message is None:
            return
        notice = self._join_notice(client_id)
        peers = self.backend.join(client_id, connection, message.roomId)
        fan_out(peers, connection, notice)
        connection.send(JoinedReply().to_json())

    def signal(self, connection, client_id: str, data: dict) -> None:
        if not self.relay_signals:
            logger.debug(f"Signal received from client {client_id}")
            return
        room_id = self._signal_room(client_id, data)
        if room_id is None:
            logger.warning(f"Signal from client {client_id} has no room to relay to")
            return
        relay = SignalRelay(from_=client_id, data=data)
        self.backend.broadcast(room_id, connection, relay.to_json())

    def _signal_room(self, client_id: str, data: dict) -> Optional[str]:
        room_id = data.get("roomId")
        if isinstance(room_id, str) and room_id:
            return room_id
        entry = self.backend.lookup(client_id)
        return entry.room_id if entry else None

    def chat(self, connection, client_id: str, data: dict) -> None:
        message = self._validate(ChatMessage, client_id, data)
        if message is None:
            return
        relay = ChatRelay(clientId=client_id, message=message.message)
        self.backend.broadcast(message.roomId, connection, relay.to_json())

    def file_transfer(self, connection, client_id: str, data: dict) -> None:
        message = self._validate(RoomMessage, client_id, data)
        if message is None:
            return
        relay = FileTransferRelay(from_=client_id, data=data)
        delivered = self.backend.broadcast(message.roomId, connection, relay.to_json())
        logger.info(f"File transfer signaling message sent from client {client_id} to room {message.roomId} ({delivered} peer(s))")
