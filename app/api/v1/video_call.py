import json
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, resolve_user_from_token
from app.db.models import User
from app.db.session import async_session, get_session
from app.realtime.signaling import signaling_relay
from app.schemas.video_call import RoomCreatedResponse, VideoCallRoomResponse
from app.services.video_call_service import VideoCallService

router = APIRouter()

async def get_video_call_service(session: AsyncSession = Depends(get_session)) -> VideoCallService:
    return VideoCallService(session)

@router.get("/room/appointment/{appointment_id}", response_model=VideoCallRoomResponse)
async def get_room_by_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: VideoCallService = Depends(get_video_call_service)
):
    return await service.get_room_by_appointment_id(appointment_id, current_user.id)

@router.post("/room/appointment/{appointment_id}/create", response_model=RoomCreatedResponse)
async def create_room_for_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: VideoCallService = Depends(get_video_call_service)
):
    room_id = await service.create_room_as(appointment_id, current_user.id)
    return RoomCreatedResponse(room_id=room_id)

@router.post("/room/{room_id}/end", status_code=status.HTTP_204_NO_CONTENT)
async def end_call(
    room_id: str,
    current_user: User = Depends(get_current_user),
    service: VideoCallService = Depends(get_video_call_service)
):
    await service.end_call_as(room_id, current_user.id)

@router.websocket("/ws")
async def video_call_socket(websocket: WebSocket, token: str = Query(...)):
    async with async_session() as session:
        try:
            user = await resolve_user_from_token(token, session)
        except HTTPException:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    await websocket.accept()
    connection = signaling_relay.connect(websocket, user.id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await signaling_relay.emit(connection, "error", {"message": "Malformed message"})
                continue
            if not isinstance(message, dict):
                await signaling_relay.emit(connection, "error", {"message": "Malformed message"})
                continue
            await signaling_relay.dispatch(connection, message.get("event"), message.get("data", {}))
    except WebSocketDisconnect:
        pass
    finally:
        await signaling_relay.disconnect(connection)
