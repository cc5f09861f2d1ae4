from pydantic import BaseModel
from typing import Optional


class MemberInfo(BaseModel):
    peer_id: str
    is_host: bool
    connected_at: str

class RoomSummary(BaseModel):
    room_id: str
    host_id: Optional[str]
    member_count: int
    created_at: str

class RoomDetailsResponse(BaseModel):
    room_id: str
    host_id: Optional[str]
    member_count: int
    created_at: str
    members: list[MemberInfo]

class HealthResponse(BaseModel):
    status: str
    connections: int
    rooms: int
    delivery_failures: int
