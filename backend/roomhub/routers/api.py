from fastapi import APIRouter
from . import auth, rooms, moderation

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(moderation.router, prefix="/rooms", tags=["moderation"])
