from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from perfwatch.api_routers.v1 import api_router
from perfwatch.features.health.routes.health import router as health_router
from perfwatch.platform.config import settings
from perfwatch.platform.db.session import init_db
from perfwatch.platform.exceptions import add_exception_handlers
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield


app = FastAPI(
    title="Perfwatch API",
    description="Lighthouse performance audits with median scoring, screenshots and filmstrips",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)


# Root endpoint for basic info
@app.get("/", tags=["Info"])
def root():
    return {
        "app_name": "Perfwatch API",
        "description": "Lighthouse performance audits for your pages.",
        "version": "1.0.0",
        "docs_url": "/docs",
        "api_base": "/api/v1",
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(health_router)
app.include_router(api_router, prefix="/api/v1")
