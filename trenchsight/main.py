"""TrenchSight Capture Service

FastAPI application behind the field operator's capture screen.

Technical Stack:
- Framework: FastAPI (async)
- Camera: OpenCV
- Encoding: Pillow
- Backend transport: requests

Core Services:
- Capture session control
  * Readiness gates (battery, storage)
  * Tilt stability gate
  * Sequenced, geo-tagged photo upload

Run with ``uvicorn trenchsight.main:app``.
"""

from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.v1 import capture
from .core.config import settings
from .core.logger import get_logger
from .services.capture import capture_service

# Configure logging
logger = get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    capture_service.startup()
    logger.info("TrenchSight capture service started")
    yield
    capture_service.shutdown()
    logger.info("TrenchSight capture service stopped")


app = FastAPI(
    title="TrenchSight Capture API",
    description="Guided, geo-tagged trench photo capture",
    version=settings.VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS for the handset front-end
origins = settings.cors_origins_list
allow_credentials = False if origins == ["*"] else True
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(
    capture.router,
    prefix=settings.API_PREFIX,
)


@app.get(
    "/",
    response_model=Dict[str, str],
    summary="Service Health Check",
)
async def health_check() -> Dict[str, str]:
    return {
        "service": "TrenchSight Capture API",
        "version": settings.VERSION,
        "status": "operational",
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions with a consistent error body."""
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500, content={"error": "Internal Server Error", "detail": str(exc)}
    )
