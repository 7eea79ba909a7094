"""
FastAPI Application Entry Point.
Initializes the FastAPI app with middleware, CORS, error handlers, and routes.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.core.cache import cache
from app.core.database import engine
from app.core.errors import register_exception_handlers
from app.core.logging_config import setup_logging
from app.core.rate_limit import limiter
from app.core.websocket import connection_manager

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Ping server (environment: %s)", settings.environment)
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()
    await engine.dispose()
    logger.info("Ping server stopped")


# Initialize FastAPI application
app = FastAPI(
    title="Ping Server",
    description="FastAPI backend for the Ping messaging application",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Add rate limiter state and error handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# CORS Middleware
# WebSocket CORS is handled by Socket.IO itself (via cors_allowed_origins)
cors_origins = settings.get_allowed_origins_list()
logger.info("CORS allowed origins: %s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health Check Endpoints
@app.get("/health", tags=["Health"])
@limiter.exempt
async def health_check():
    """Basic health check endpoint."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "environment": settings.environment,
        }
    )


@app.get("/health/ready", tags=["Health"])
@limiter.exempt
async def readiness_check():
    """
    Readiness check endpoint.
    Verifies database and cache connectivity.
    """
    from sqlalchemy import text
    from redis.exceptions import RedisError
    from app.core.database import AsyncSessionLocal

    checks = {
        "database": False,
        "redis": "not_configured" if not settings.redis_url else False,
    }

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = True
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Readiness: database check failed: %s", e)

    if settings.redis_url:
        try:
            checks["redis"] = cache.redis is not None and bool(await cache.redis.ping())
        except (RedisError, OSError) as e:
            logger.warning("Readiness: redis check failed: %s", e)

    # Consider redis as healthy if not configured
    redis_ok = checks["redis"] == "not_configured" or checks["redis"] is True
    all_healthy = checks["database"] and redis_ok
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_healthy else "not ready",
            "checks": checks,
        }
    )


@app.get("/health/websocket", tags=["Health"])
@limiter.exempt
async def websocket_health_check():
    """WebSocket endpoint information for debugging."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "configured",
            "websocket_endpoint": "/socket.io/",
            "active_connections": len(connection_manager.connections),
            "active_users": len(connection_manager.user_sessions),
            "active_conversations": len(connection_manager.conversation_rooms),
            "config": {
                "path": "/socket.io",
                "heartbeat_interval": settings.ws_heartbeat_interval,
                "presence_ttl": settings.presence_ttl,
            },
        }
    )


# Include API routers
from app.api.v1 import auth, blacklist, conversations, friends, messages, sessions, users

app.include_router(
    auth.router,
    prefix="/api/v1/auth",
    tags=["Authentication"]
)

app.include_router(
    sessions.router,
    prefix="/api/v1/sessions",
    tags=["Sessions"]
)

app.include_router(
    users.router,
    prefix="/api/v1/users",
    tags=["Users"]
)

app.include_router(
    friends.router,
    prefix="/api/v1/friends",
    tags=["Friends"]
)

app.include_router(
    blacklist.router,
    prefix="/api/v1/blacklist",
    tags=["Blacklist"]
)

app.include_router(
    conversations.router,
    prefix="/api/v1/conversations",
    tags=["Conversations"]
)

app.include_router(
    messages.router,
    prefix="/api/v1/conversations",
    tags=["Messages"]
)

# Save reference to FastAPI app (for testing)
fastapi_app = app

# Socket.IO wraps FastAPI: /socket.io/* goes to Socket.IO, everything else to FastAPI
app = connection_manager.get_asgi_app(fastapi_app)
