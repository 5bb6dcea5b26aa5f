"""
Ride Match - FastAPI Application

Wires the routing collaborator, match store, event sink and orchestrator
together and exposes the matching engine over HTTP.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ridematch.config import settings
from ridematch.database import close_db, get_db, get_redis, init_db
from ridematch.exceptions import (
    InvalidCriteria,
    InvalidLocationData,
    InvalidStatusTransition,
    MatchNotFound,
)
from ridematch.routers import matches, meeting_points
from ridematch.scheduler import MatchExpiryJob
from ridematch.services.event_service import RedisEventSink
from ridematch.services.match_repository import MatchRepository
from ridematch.services.match_service import MatchOrchestrator
from ridematch.services.route_cache import RouteCache
from ridematch.services.routing_service import (
    CachedRoutingService,
    GoogleMapsRoutingService,
    RoutingService,
)


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_routing_service() -> RoutingService:
    """Google Maps client, wrapped in the Redis route cache when enabled."""
    routing: RoutingService = GoogleMapsRoutingService(
        api_key=settings.google_maps_api_key,
        base_url=settings.google_maps_base_url,
        timeout=settings.routing_timeout_seconds,
    )
    if settings.route_cache_ttl_seconds > 0:
        cache = RouteCache(get_redis(), ttl_seconds=settings.route_cache_ttl_seconds)
        routing = CachedRoutingService(routing, cache)
    return routing


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Initialize database connections
    - Build the matching engine
    - Start the match expiry job
    - Cleanup on shutdown
    """
    # Startup
    await init_db()

    # Fails fast on invalid scoring settings
    config = settings.scoring_config()

    routing = build_routing_service()
    orchestrator = MatchOrchestrator(
        routing,
        repository=MatchRepository(get_db()),
        event_sink=RedisEventSink(get_redis(), settings.event_channel),
        config=config,
    )
    app.state.routing = routing
    app.state.orchestrator = orchestrator

    if not settings.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY not set, scoring will use straight-line fallbacks")

    try:
        await get_db().client.admin.command("ping")
        logger.info("Connected to MongoDB")
    except Exception as e:
        logger.error(f"FAILED to connect to MongoDB: {e}")

    try:
        await get_redis().ping()
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"FAILED to connect to Redis: {e}")

    expiry_job = MatchExpiryJob(orchestrator)
    app.state.expiry_job = expiry_job

    scheduler = None
    try:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            expiry_job.execute,
            "interval",
            minutes=settings.match_expiry_job_minutes,
            id="match_expiry",
            name="Match Expiry Job",
            max_instances=1,
            coalesce=True,  # Skip if previous run is still executing
        )
        scheduler.start()
        logger.info(
            f"Scheduler started: Match Expiry ({settings.match_expiry_job_minutes}m)"
        )
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}")

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown()
        logger.info("Scheduler stopped")

    await routing.aclose()
    await close_db()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Ride Match API",
    description="""
    Ride Match - Ride-share matching engine

    ## Features
    - Route overlap and detour analysis
    - Multi-factor compatibility scoring
    - Match lifecycle with expiry
    - Meeting point suggestions
    """,
    version="1.0.0",
    debug=settings.debug,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(MatchNotFound)
async def match_not_found_handler(request: Request, exc: MatchNotFound):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(InvalidStatusTransition)
async def invalid_transition_handler(request: Request, exc: InvalidStatusTransition):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "current_status": exc.current,
            "requested_status": exc.target,
        },
    )


@app.exception_handler(InvalidCriteria)
@app.exception_handler(InvalidLocationData)
@app.exception_handler(ValueError)
async def unprocessable_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    Internal details are logged, never returned.
    """
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Something went wrong while processing the request."},
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(
    matches.router, prefix=f"{settings.api_v1_str}/matches", tags=["Matches"]
)
app.include_router(
    meeting_points.router,
    prefix=f"{settings.api_v1_str}/meeting-points",
    tags=["Meeting Points"],
)


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe with match expiry job status."""
    expiry_job = getattr(app.state, "expiry_job", None)
    return {
        "status": "healthy",
        "service": "ridematch",
        "expiry_job": expiry_job.status() if expiry_job else None,
    }
