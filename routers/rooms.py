from typing import List

from fastapi import APIRouter, HTTPException
from schemas.rooms import RoomSummaryResponse
from backend import relay_backend
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("", response_model=List[RoomSummaryResponse])
async def list_rooms():
    """Live rooms and how many connections each one holds."""
    rooms = relay_backend.room_summaries()
    logger.debug(f"Listing {len(rooms)} room(s)")
    return [RoomSummaryResponse(**room) for room in rooms]


@rooms_router.get("/{room_id}", response_model=RoomSummaryResponse)
async def get_room_details(room_id: str):
    room = relay_backend.room_summary(room_id)
    if room is None:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomSummaryResponse(**room)
