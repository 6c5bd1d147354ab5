import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClientEntry:
    connection: Any
    room_id: str


class RoomRegistry:
    """Room id -> set of member connections.

    An empty room is never kept: rooms appear on the first add and are
    dropped as soon as the last member is removed.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[Any]] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def ensure_room(self, room_id: str) -> Set[Any]:
        room = self._rooms.get(room_id)
        if room is None:
            room = self._rooms[room_id] = set()
            logger.info(f"Room {room_id} created")
        return room

    def add_member(self, room_id: str, connection) -> None:
        room = self.ensure_room(room_id)
        room.add(connection)
        logger.debug(f"Connection added to room {room_id} (members: {len(room)})")

    def remove_member(self, room_id: str, connection) -> None:
        room = self._rooms.get(room_id)
        if room is None:
            logger.debug(f"Room {room_id} already gone, nothing to remove")
            return
        room.discard(connection)
        if not room:
            del self._rooms[room_id]
            logger.info(f"Room {room_id} is empty, deleted")

    def room_exists(self, room_id: str) -> bool:
        return room_id in self._rooms

    def members(self, room_id: str) -> List[Any]:
        return list(self._rooms.get(room_id, ()))

    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def broadcast(self, room_id: str, exclude, payload: str) -> int:
        """Send ``payload`` to every open member of the room except ``exclude``.

        Closed members are skipped; they leave through their own close event.
        Returns how many connections accepted the payload.
        """
        return fan_out(self.members(room_id), exclude, payload)


def fan_out(members, exclude, payload: str) -> int:
    delivered = 0
    for connection in members:
        if connection is exclude or not connection.is_open:
            continue
        if connection.send(payload):
            delivered += 1
    return delivered


class ClientRegistry:
    """Client id -> (connection, current room)."""

    def __init__(self):
        self._clients: Dict[str, ClientEntry] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def register(self, client_id: str, connection, room_id: str) -> ClientEntry:
        if client_id in self._clients:
            logger.warning(f"Client {client_id} was already registered, overwriting")
        entry = self._clients[client_id] = ClientEntry(connection, room_id)
        return entry

    def lookup(self, client_id: str) -> Optional[ClientEntry]:
        return self._clients.get(client_id)

    def unregister(self, client_id: str) -> Optional[ClientEntry]:
        return self._clients.pop(client_id, None)


class RelayBackend:
    """Keeps the room and client registries in agreement.

    Every method takes the same lock, so a join, leave or broadcast snapshot
    is never observed half applied, even when connections are served from
    different threads.
    """

    def __init__(self):
        self.rooms = RoomRegistry()
        self.clients = ClientRegistry()
        self._lock = threading.Lock()
        logger.info("Initializing in-memory RelayBackend")

    def _join(self, client_id: str, connection, room_id: str) -> List[Any]:
        previous = self.clients.lookup(client_id)
        if previous is not None and previous.room_id != room_id:
            self.rooms.remove_member(previous.room_id, previous.connection)
            logger.info(f"Client {client_id} moved from room {previous.room_id} to {room_id}")
        peers = [member for member in self.rooms.members(room_id) if member is not connection]
        self.rooms.add_member(room_id, connection)
        self.clients.register(client_id, connection, room_id)
        return peers

    def join(self, client_id: str, connection, room_id: str) -> List[Any]:
        """Put the client in ``room_id``, leaving its previous room if any.

        Returns the members that were already in the room, taken in the same
        critical section, so a join notice reaches exactly those peers.
        """
        with self._lock:
            peers = self._join(client_id, connection, room_id)
        logger.info(f"Client {client_id} added to room {room_id}")
        return peers

    def create(self, client_id: str, connection, room_id: str) -> Optional[List[Any]]:
        """Like ``join`` but only for a room that does not exist yet.

        Returns None, without touching either registry, when the room exists.
        """
        with self._lock:
            if self.rooms.room_exists(room_id):
                logger.info(f"Room {room_id} already exists, create refused for client {client_id}")
                return None
            peers = self._join(client_id, connection, room_id)
        logger.info(f"Room {room_id} created by client {client_id}")
        return peers

    def leave(self, client_id: str) -> Optional[ClientEntry]:
        """Drop the client from both registries. Unknown ids are ignored."""
        with self._lock:
            entry = self.clients.unregister(client_id)
            if entry is not None:
                self.rooms.remove_member(entry.room_id, entry.connection)
        if entry is not None:
            logger.info(f"Client {client_id} left room {entry.room_id}")
        return entry

    def lookup(self, client_id: str) -> Optional[ClientEntry]:
        with self._lock:
            return self.clients.lookup(client_id)

    def room_exists(self, room_id: str) -> bool:
        with self._lock:
            return self.rooms.room_exists(room_id)

    def members(self, room_id: str) -> List[Any]:
        with self._lock:
            return self.rooms.members(room_id)

    def broadcast(self, room_id: str, exclude, payload: str) -> int:
        with self._lock:
            members = self.rooms.members(room_id)
        delivered = fan_out(members, exclude, payload)
        logger.debug(f"Broadcasted message to room {room_id}: {delivered} recipient(s)")
        return delivered

    def room_summary(self, room_id: str) -> Optional[dict]:
        with self._lock:
            if not self.rooms.room_exists(room_id):
                return None
            return {"room_id": room_id, "member_count": len(self.rooms.members(room_id))}

    def room_summaries(self) -> List[dict]:
        with self._lock:
            return [
                {"room_id": room_id, "member_count": len(self.rooms.members(room_id))}
                for room_id in self.rooms.room_ids()
            ]


relay_backend = RelayBackend()
