from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse, RoomSummary
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/", response_model=list[RoomSummary])
async def list_rooms(request: Request):
    """List every room that currently has at least one peer."""
    relay = request.app.state.relay
    rooms = relay.registry.rooms()
    logger.debug(f"Room list requested: {len(rooms)} active rooms")
    return [RoomSummary(room=room, peer_count=count) for room, count in rooms.items()]


@rooms_router.get("/{room}", response_model=RoomDetailsResponse)
async def get_room_details(room: str, request: Request):
    """
    Get the current membership of a room.

    Returns:
    - room: Room label
    - peers: Ids of the peers in the room, in join order
    - peer_count: Number of peers in the room
    - capacity: Configured per-room capacity (null when unbounded)
    - is_full: Whether a new peer would be refused
    """
    relay = request.app.state.relay
    members = relay.registry.members_of(room)
    if not members:
        # Rooms only exist while they have members
        logger.debug(f"Room details failed: Room {room} has no peers")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(
        room=room,
        peers=[peer.id for peer in members],
        peer_count=len(members),
        capacity=relay.lifecycle.room_capacity,
        is_full=relay.lifecycle.room_is_full(room),
    )
