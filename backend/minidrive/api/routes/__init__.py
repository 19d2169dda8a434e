"""API route registration."""

from fastapi import APIRouter

from minidrive.api.routes import admin, auth, files, health

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(files.router, tags=["files"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
