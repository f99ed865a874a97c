from fastapi import APIRouter

from perfwatch.features.health.routes.health import router as health_router
from perfwatch.features.scan.routes.scan import router as scan_router
from perfwatch.features.scan.routes.share import router as share_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(health_router)
api_router.include_router(scan_router)
api_router.include_router(share_router)
