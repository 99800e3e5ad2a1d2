from fastapi import APIRouter
from app.api.api_v1.endpoints import auth, chats, realtime
from app.routers import health

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(chats.router, prefix="/chats", tags=["chats"])
api_router.include_router(realtime.router, tags=["realtime"])
api_router.include_router(health.router, tags=["health"])
