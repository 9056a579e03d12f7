from fastapi import APIRouter
from app.api.v1.routes import auth
from .uploads import router as uploads_router
from .stream import router as stream_router


api_router = APIRouter()

api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(uploads_router)
api_router.include_router(stream_router)
