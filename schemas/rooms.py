from pydantic import BaseModel


class RoomSummaryResponse(BaseModel):
    room_id: str
    member_count: int
