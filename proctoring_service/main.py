"""
Interview Proctoring Service - FastAPI Application

Routes:
- /api/proctoring   control endpoint used by monitors (see proctor/api.py)
- /health, /        liveness
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .db import get_engine, init_db
from .proctor.api import get_proctoring_service, router as proctoring_router
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

# Monitors poll these; keep them out of the request log
QUIET_PATHS = {"/health", "/api/proctoring/health", "/favicon.ico"}


app = FastAPI(
    title=settings.APP_NAME,
    description="Integrity monitoring for AI-conducted interviews",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


@app.middleware("http")
async def time_requests(request: Request, call_next):
    """Log method, path, status and latency; expose latency as a header."""
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"[REQUEST] {request.method} {request.url.path} raised {type(e).__name__}: {e}")
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.1f}"

    if request.url.path not in QUIET_PATHS:
        logger.info(f"[REQUEST] {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")

    return response


# Monitors run in the candidate's browser or desktop app, on any origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(proctoring_router)


@app.on_event("startup")
async def on_startup():
    setup_logging(
        service_name="proctoring-service",
        level=settings.LOG_LEVEL,
        log_to_file=settings.LOG_TO_FILE,
        log_dir=settings.LOG_DIR
    )
    logger.info(f"{settings.APP_NAME} v{__version__} starting on port {settings.PORT}")

    try:
        init_db(get_engine())
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


def current_proctoring_service():
    """The service instance the routes resolve (honours dependency overrides)"""
    provider = app.dependency_overrides.get(get_proctoring_service, get_proctoring_service)
    return provider()


@app.on_event("shutdown")
async def on_shutdown():
    """Persist acknowledged but still buffered events, then release the pool."""
    try:
        await current_proctoring_service().shutdown()
    except Exception as e:
        logger.error(f"Final event flush failed: {e}")

    get_engine().dispose()
    logger.info(f"{settings.APP_NAME} stopped")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__
    }


@app.get("/")
async def root():
    return {
        "message": settings.APP_NAME,
        "docs": "/docs" if settings.DEBUG else "Disabled in production"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("proctoring_service.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
