from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal


# Inbound

class RoomMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    roomId: str = Field(min_length=1)


class ChatMessage(RoomMessage):
    message: Any


# Outbound

class Outbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ConnectionNotice(Outbound):
    type: Literal["connection"] = "connection"
    clientId: str


class ErrorNotice(Outbound):
    type: Literal["error"] = "error"
    message: str


class RoomCreatedNotice(Outbound):
    type: Literal["room_created"] = "room_created"
    message: str


class RoomJoinedNotice(Outbound):
    type: Literal["room_joined"] = "room_joined"
    clientId: str
    message: str


class CreatedReply(Outbound):
    type: Literal["peer_connected-created"] = "peer_connected-created"
    data: bool = True


class JoinedReply(Outbound):
    type: Literal["peer_connected-joined"] = "peer_connected-joined"
    data: bool = False


class ChatRelay(Outbound):
    clientId: str
    message: Any


class FileTransferRelay(Outbound):
    type: Literal["file_transfer"] = "file_transfer"
    from_: str = Field(alias="from")
    data: dict


class SignalRelay(Outbound):
    type: Literal["signal"] = "signal"
    from_: str = Field(alias="from")
    data: dict
