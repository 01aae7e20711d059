from fastapi import APIRouter

from .health import router as health_router
from .recipes import router as recipes_router
from .video import router as video_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(video_router)
api_router.include_router(recipes_router)
