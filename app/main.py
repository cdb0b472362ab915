import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.api.v1.endpoints import admin, auth, health
from app.schemas.response import ApiResponse
from app.core.config import Settings, get_settings
from app.core.database import DatabaseManager
from app.core.dependencies import create_limiter
from app.core.handler import (
    AppException,
    http_exception_handler,
    validation_exception_handler,
    app_exception_handler,
    rate_limit_exception_handler,
    general_exception_handler
)
from app.core.logging import configure_logging
from app.core.security import Clock, utcnow
from app.repositories.memory import MemoryStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting up application...")
    settings: Settings = app.state.settings

    if settings.CREDENTIAL_STORE == "postgres":
        db_manager = DatabaseManager()
        try:
            db_manager.init(
                database_url=settings.database_url_computed,
                echo=settings.DB_ECHO,
                pool_size=settings.DB_POOL_SIZE
            )
            if not settings.is_production:
                await db_manager.create_all()
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            await db_manager.close()
            raise
        app.state.db_manager = db_manager
        logger.info("Database connection initialized")
    else:
        logger.info("Using in-memory credential store")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    db_manager = getattr(app.state, "db_manager", None)
    if db_manager is not None:
        await db_manager.close()
        app.state.db_manager = None
        logger.info("Database connection closed")


def create_app(settings: Settings | None = None, clock: Clock = utcnow) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Configuration; loaded from the environment when omitted
        clock: Source of "now" for token expiry and lockout decisions
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Session Auth API",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.clock = clock
    app.state.limiter = create_limiter()
    app.state.memory_store = MemoryStore() if settings.CREDENTIAL_STORE == "memory" else None
    app.state.db_manager = None

    # Register global exception handlers (apply to all endpoints)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(admin.router, prefix="/api/auth/admin", tags=["Administration"])
    app.include_router(health.router, prefix="/api", tags=["Health"])

    @app.get("/")
    def root():
        """Root endpoint."""
        return ApiResponse(
            success=True,
            message="System operational",
            data={"status": "ok"}
        )

    return app


app = create_app()
