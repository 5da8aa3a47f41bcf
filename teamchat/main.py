"""Team Chat Service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teamchat.api import channels_router, teams_router, websocket_router
from teamchat.config.settings import get_settings
from teamchat.database import AsyncSessionLocal, close_db
from teamchat.errors import TeamChatError
from teamchat.realtime import RealtimeGateway
from teamchat.realtime.access import RoomAccessPolicy
from teamchat.realtime.redis_bridge import RedisFanoutBridge, create_redis_client

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def init_sentry() -> None:
    """Initialise error reporting when a DSN is configured"""
    if not settings.sentry_dsn:
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.service_name}@{settings.service_version}",
    )
    logger.info("Sentry error reporting enabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    bridge = None
    if settings.enable_redis_fanout:
        bridge = RedisFanoutBridge(
            create_redis_client(settings.redis_url),
            channel=settings.redis_fanout_channel,
            reconnect_delay=settings.redis_reconnect_delay,
            max_reconnect_delay=settings.redis_max_reconnect_delay,
        )

    gateway = RealtimeGateway(
        bridge=bridge,
        room_access=RoomAccessPolicy(AsyncSessionLocal),
        send_timeout=settings.socket_send_timeout,
    )
    if bridge is not None:
        try:
            await bridge.start(gateway.deliver_local)
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise
    app.state.gateway = gateway

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.service_name}")
    await gateway.disconnect_all()
    if bridge is not None:
        await bridge.stop()
    await close_db()


init_sentry()

# Create FastAPI application
app = FastAPI(
    title="Team Chat Service",
    version=settings.service_version,
    description="Realtime team messaging and team authorization",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# Health check endpoint
@app.get("/health")
async def root_health_check(request: Request):
    """Root health check endpoint"""
    gateway = getattr(request.app.state, "gateway", None)
    health = {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "connections": gateway.connection_count if gateway else 0,
    }
    if gateway is not None and gateway.bridge is not None:
        health["fanout"] = "listening" if gateway.bridge.listening else "down"
        if not gateway.bridge.listening:
            health["status"] = "degraded"
    return health


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "description": "Team Chat Service",
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(teams_router)
app.include_router(channels_router)
app.include_router(websocket_router)


@app.exception_handler(TeamChatError)
async def teamchat_exception_handler(request, exc: TeamChatError):
    """Render domain errors with their own status code"""
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "teamchat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
