"""
Main FastAPI application for the Scavenger Hunt service
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from scavenger_hunt.api import admin, auth, game, progress, system, user
from scavenger_hunt.config import settings
from scavenger_hunt.db.database import SessionLocal, init_db
from scavenger_hunt.dependencies import rate_limit
from scavenger_hunt.errors import register_exception_handlers
from scavenger_hunt.services.checkpoint_service import checkpoint_service
from scavenger_hunt.services.rate_limit_service import build_rate_limiter

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Scavenger Hunt service...")
    init_db()
    if settings.SEED_CHECKPOINTS:
        db = SessionLocal()
        try:
            checkpoint_service.seed_default_catalog(db)
        finally:
            db.close()

    yield

    # Shutdown
    logger.info("Shutting down Scavenger Hunt service...")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Scavenger Hunt",
        description="Backend for the Talabat QR scavenger hunt",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.rate_limiter = build_rate_limiter()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add request processing time to response headers."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    register_exception_handlers(app)

    # Include routers
    api_limit = [Depends(rate_limit("api", settings.RATE_LIMIT_MAX_REQUESTS))]
    app.include_router(system.router, tags=["System"])
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"], dependencies=api_limit)
    app.include_router(game.router, prefix="/api/game", tags=["Game"], dependencies=api_limit)
    app.include_router(progress.router, prefix="/api/progress", tags=["Progress"], dependencies=api_limit)
    app.include_router(user.router, prefix="/api/user", tags=["User"], dependencies=api_limit)
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"], dependencies=api_limit)

    return app


app = create_app()
