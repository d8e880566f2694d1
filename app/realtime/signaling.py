"""
WebRTC signaling relay for video-call rooms.

Keeps an in-memory map of which connection sits in which room and fans
messages out to the other members of that room. Nothing here is persisted;
room state changes go through VideoCallService. Every frame is JSON shaped
``{"event": <name>, "data": {...}}`` in both directions.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import UUID, uuid4

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logger import logger
from app.db.models import VideoCallStatus
from app.db.session import async_session
from app.services.video_call_service import VideoCallService

# Media-state toggles relayed as-is under a new event name
MEDIA_EVENTS = {
    "screen-share-start": "screen-share-started",
    "screen-share-stop": "screen-share-stopped",
    "toggle-video": "video-toggled",
    "toggle-audio": "audio-toggled",
}


class RelayError(Exception):
    """Reported to the offending connection as an ``error`` event."""


@dataclass(eq=False)
class RelayConnection:
    websocket: Any
    user_id: UUID
    id: str = field(default_factory=lambda: uuid4().hex)
    room_id: Optional[str] = None


class SignalingRelay:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.rooms: Dict[str, Dict[str, RelayConnection]] = {}
        self.connections: Dict[str, RelayConnection] = {}
        self.handlers: Dict[str, Callable[[RelayConnection, dict], Awaitable[None]]] = {
            "join-room": self.join_room,
            "leave-room": self.leave_room,
            "webrtc-signal": self.webrtc_signal,
            "end-call": self.end_call,
        }
        for event in MEDIA_EVENTS:
            self.handlers[event] = self.media_toggle

    # connection bookkeeping

    def connect(self, websocket: Any, user_id: UUID) -> RelayConnection:
        connection = RelayConnection(websocket=websocket, user_id=user_id)
        self.connections[connection.id] = connection
        logger.info(f"Signaling client connected: {connection.id} (user {user_id})")
        return connection

    async def disconnect(self, connection: RelayConnection) -> None:
        logger.info(f"Signaling client disconnected: {connection.id}")
        if connection.room_id:
            try:
                await self.leave_room(connection, {"roomId": connection.room_id})
            except Exception:
                logger.exception(f"Failed to release room for connection {connection.id}")
        self.connections.pop(connection.id, None)

    def members(self, room_id: str) -> list[RelayConnection]:
        return list(self.rooms.get(room_id, {}).values())

    def add_member(self, connection: RelayConnection, room_id: str) -> None:
        self.rooms.setdefault(room_id, {})[connection.id] = connection
        connection.room_id = room_id

    def remove_member(self, connection: RelayConnection, room_id: str) -> None:
        members = self.rooms.get(room_id)
        if members is not None:
            members.pop(connection.id, None)
            if not members:
                del self.rooms[room_id]
        if connection.room_id == room_id:
            connection.room_id = None

    # outbound

    async def emit(self, connection: RelayConnection, event: str, data: dict) -> None:
        await connection.websocket.send_json({"event": event, "data": data})

    async def broadcast(
        self, room_id: str, event: str, data: dict, exclude: Optional[RelayConnection] = None
    ) -> None:
        for member in self.members(room_id):
            if member is exclude:
                continue
            try:
                await self.emit(member, event, data)
            except Exception:
                logger.warning(f"Dropping {event} for connection {member.id}; send failed")

    # inbound

    async def dispatch(self, connection: RelayConnection, event: Optional[str], data: Any) -> None:
        handler = self.handlers.get(event or "")
        if handler is None:
            await self.emit(connection, "error", {"message": f"Unknown event '{event}'"})
            return
        if not isinstance(data, dict):
            await self.emit(connection, "error", {"message": "Event data must be an object"})
            return

        try:
            data = dict(data, event=event)
            await handler(connection, data)
        except RelayError as exc:
            await self.emit(connection, "error", {"message": str(exc)})
        except HTTPException as exc:
            await self.emit(connection, "error", {"message": exc.detail})
        except Exception:
            logger.exception(f"Error handling {event} from connection {connection.id}")
            await self.emit(connection, "error", {"message": f"Failed to handle {event}"})

    def room_of(self, connection: RelayConnection, data: dict) -> str:
        room_id = data.get("roomId")
        if not room_id:
            raise RelayError("roomId is required")
        claimed = data.get("userId")
        if claimed is not None and str(claimed) != str(connection.user_id):
            raise RelayError("userId does not match the authenticated user")
        return room_id

    def require_membership(self, connection: RelayConnection, room_id: str) -> None:
        if connection.id not in self.rooms.get(room_id, {}):
            raise RelayError("Join the room before sending to it")

    async def join_room(self, connection: RelayConnection, data: dict) -> None:
        room_id = self.room_of(connection, data)
        user_id = connection.user_id

        async with self.session_factory() as session:
            service = VideoCallService(session)
            if not await service.can_user_join_room(room_id, user_id):
                raise RelayError("Not authorized to join this room")
            status = await service.user_joined_room(room_id, user_id)

        if status == VideoCallStatus.ENDED:
            raise RelayError("This call has already ended")

        if connection.room_id and connection.room_id != room_id:
            await self.leave_room(connection, {"roomId": connection.room_id})

        self.add_member(connection, room_id)
        await self.broadcast(room_id, "user-joined", {"userId": str(user_id)}, exclude=connection)
        await self.emit(connection, "joined-room", {"roomId": room_id, "userId": str(user_id)})
        logger.info(f"User {user_id} joined room {room_id}")

    async def leave_room(self, connection: RelayConnection, data: dict) -> None:
        room_id = self.room_of(connection, data)
        user_id = connection.user_id
        self.require_membership(connection, room_id)

        self.remove_member(connection, room_id)
        async with self.session_factory() as session:
            await VideoCallService(session).user_left_room(room_id, user_id)

        await self.broadcast(room_id, "user-left", {"userId": str(user_id)})
        logger.info(f"User {user_id} left room {room_id}")

    async def webrtc_signal(self, connection: RelayConnection, data: dict) -> None:
        room_id = self.room_of(connection, data)
        self.require_membership(connection, room_id)
        await self.broadcast(
            room_id,
            "webrtc-signal",
            {"signal": data.get("signal"), "userId": str(connection.user_id)},
            exclude=connection,
        )

    async def media_toggle(self, connection: RelayConnection, data: dict) -> None:
        room_id = self.room_of(connection, data)
        self.require_membership(connection, room_id)

        outbound = {"userId": str(connection.user_id)}
        if "isEnabled" in data:
            outbound["isEnabled"] = bool(data["isEnabled"])
        await self.broadcast(room_id, MEDIA_EVENTS[data["event"]], outbound, exclude=connection)

    async def end_call(self, connection: RelayConnection, data: dict) -> None:
        room_id = self.room_of(connection, data)
        self.require_membership(connection, room_id)

        async with self.session_factory() as session:
            await VideoCallService(session).end_call(room_id)

        await self.broadcast(room_id, "call-ended", {"userId": str(connection.user_id)})
        for member in self.members(room_id):
            self.remove_member(member, room_id)
        logger.info(f"Call ended in room {room_id} by {connection.user_id}")


signaling_relay = SignalingRelay(async_session)
