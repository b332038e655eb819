"""
TagTune - Main Application

FastAPI service that lets users import their music library, tag songs and
browse by tags, albums and artists.  Serves:
- REST API endpoints under /api (auth, songs, tags)
- Health check endpoint

The entity store (SQLite or in-memory) is created once and attached to
``app.state.store``; routes receive it through a dependency and never
branch on which backend is active.
"""

import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from tagtune.config import (
    APP_ENV,
    APP_HOST,
    APP_PORT,
    APP_VERSION,
    CORS_ORIGINS,
    DB_PATH,
    DEBUG,
    LOG_LEVEL,
    SEED_DEMO_DATA,
    USE_MOCK_DATA,
)
from tagtune.demo import seed_demo_data
from tagtune.errors import Internal, TagTuneError
from tagtune.routes.api import router as api_router
from tagtune.store import EntityStore, create_store

# ---------------------------------------------------------------------------
# Logging setup (stdout only)
# ---------------------------------------------------------------------------
logger.remove()

logger.add(
    sys.stdout,
    level="DEBUG" if DEBUG else LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    On startup:
        1. Initialize the store (creates tables / runs migrations)
        2. Seed the demo library (if enabled)

    On shutdown:
        3. Close the store
    """
    store: EntityStore = app.state.store

    # --- Startup ---
    logger.info("🚀 Starting TagTune v{}", APP_VERSION)
    logger.info("📋 Environment: {} | Debug: {}", APP_ENV, DEBUG)
    logger.info("🗄️  Store backend: {}", store.backend)

    try:
        await store.init()
    except Exception as e:
        logger.critical("❌ Store initialization failed: {}", e)
        raise

    if app.state.seed_demo:
        await seed_demo_data(store)

    logger.success("✅ Application ready — listening on {}:{}", APP_HOST, APP_PORT)

    yield

    # --- Shutdown ---
    logger.info("🛑 Shutting down TagTune …")
    await store.close()
    logger.info("👋 Shutdown complete")


# ---------------------------------------------------------------------------
# Error handlers: every error body is {"error": <message>}
# ---------------------------------------------------------------------------
async def _tagtune_error_handler(request: Request, exc: TagTuneError):
    if isinstance(exc, Internal):
        logger.error("❌ {} {} — {}", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code, content={"error": "Internal server error"}
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{where}: {first.get('msg', 'invalid value')}" if where else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(
        "❌ {} {} — unhandled error: {}", request.method, request.url.path, exc
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(
    store: Optional[EntityStore] = None, seed_demo: Optional[bool] = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    *store* defaults to the backend selected by configuration; tests pass
    their own.  *seed_demo* defaults to ``SEED_DEMO_DATA``.
    """

    app = FastAPI(
        title="TagTune",
        description=(
            "Import your music library, tag songs and browse by tags, "
            "albums and artists."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
    )

    app.state.store = store if store is not None else create_store(USE_MOCK_DATA, DB_PATH)
    app.state.seed_demo = SEED_DEMO_DATA if seed_demo is None else seed_demo

    # ------------------------------------------------------------------
    # CORS (mobile and web clients)
    # ------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------
    app.add_exception_handler(TagTuneError, _tagtune_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    # ------------------------------------------------------------------
    # Request logging middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every incoming HTTP request with timing information."""
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round(time.time() - start, 3)
            logger.error(
                "❌ {method} {path} — unhandled error after {duration}s: {exc}",
                method=request.method,
                path=request.url.path,
                duration=duration,
                exc=exc,
            )
            raise

        duration = round(time.time() - start, 3)
        status = response.status_code

        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "📤 {method} {path} — {status} [{duration}s]",
            method=request.method,
            path=request.url.path,
            status=status,
            duration=duration,
        )
        return response

    # ------------------------------------------------------------------
    # Register routers
    # ------------------------------------------------------------------
    app.include_router(api_router)  # /api/*  JSON endpoints

    return app


# ---------------------------------------------------------------------------
# Create the app instance (used by Uvicorn)
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# Direct execution (development)
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tagtune.main:app",
        host=APP_HOST,
        port=APP_PORT,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )
