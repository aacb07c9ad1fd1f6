from pydantic import BaseModel
from typing import Optional


class RoomSummary(BaseModel):
    room: str
    peer_count: int


class RoomDetailsResponse(BaseModel):
    room: str
    peers: list[str]
    peer_count: int
    capacity: Optional[int] = None
    is_full: bool
