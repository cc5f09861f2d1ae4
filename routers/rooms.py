from fastapi import APIRouter, HTTPException
from schemas.rooms import MemberInfo, RoomDetailsResponse, RoomSummary
from backend import Room, signaling_state
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def room_summary(room: Room) -> RoomSummary:
    return RoomSummary(
        room_id=room.id,
        host_id=room.host_id,
        member_count=len(room.members),
        created_at=room.created_at,
    )


@rooms_router.get("", response_model=list[RoomSummary])
async def list_rooms():
    rooms = [room_summary(room) for room in signaling_state.rooms]
    logger.debug(f"Listing {len(rooms)} rooms")
    return rooms


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str):
    """
    Read-only view of a room.

    Returns:
    - room_id: Room identifier as supplied by the first joiner
    - host_id: Peer id of the current host
    - member_count: Number of members
    - members: Peer id, host flag and connect time of each member, in join order
    """
    room = signaling_state.rooms.get(room_id)
    if room is None:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    members = [
        MemberInfo(peer_id=peer_id, is_host=peer_id == room.host_id, connected_at=conn.connected_at)
        for peer_id, conn in room.members.items()
    ]
    logger.debug(f"Room details retrieved for {room_id}: {len(members)} members")
    return RoomDetailsResponse(
        room_id=room.id,
        host_id=room.host_id,
        member_count=len(members),
        created_at=room.created_at,
        members=members,
    )
