from fastapi import APIRouter

from filebox.api.v1.endpoints import admin, auth, files, shares

api_router = APIRouter()

# Include routers
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(shares.router, prefix="/shares", tags=["shares"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
