from fastapi import APIRouter
from app.api.v1 import appointments, video_call

api_router = APIRouter()

api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(video_call.router, prefix="/video-call", tags=["video-call"])
