from fastapi import APIRouter

from shadowit.api.v1.cleanup_routes import router as cleanup_router
from shadowit.api.v1.sync_routes import router as sync_router

api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(sync_router)
api_v1_router.include_router(cleanup_router)
