"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from courtside.api.envelope import register_exception_handlers, success
from courtside.api.routes.admin import router as admin_router
from courtside.api.routes.court import router as court_router
from courtside.api.routes.match import router as match_router
from courtside.api.routes.queue import router as queue_router
from courtside.api.websockets.channel_ws import channel_websocket
from courtside.config import settings
from courtside.services.court_authority import CourtAuthority

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _court_status_loop(authority: CourtAuthority, interval: float) -> None:
    """Periodic court push; also returns rested champions to the queue."""
    while True:
        await asyncio.sleep(interval)
        try:
            authority.tick()
        except Exception:
            logger.exception("Periodic court status update failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup: tests may pre-populate app.state with their own authority
    if not hasattr(app.state, "authority"):
        app.state.authority = CourtAuthority(settings)
    authority: CourtAuthority = app.state.authority
    status_task = asyncio.create_task(
        _court_status_loop(authority, authority.settings.court_status_interval_seconds)
    )
    logger.info("Court authority started")
    yield
    # Shutdown: stop timers and close the archive
    status_task.cancel()
    try:
        await status_task
    except asyncio.CancelledError:
        pass
    authority.shutdown()
    logger.info("Court authority stopped")


app = FastAPI(
    title="Courtside",
    description="Shared court queue and match coordinator",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "courtside"}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Courtside API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/connections")
async def connection_stats(request: Request):
    """Connected clients per room."""
    return success(request.app.state.authority.hub.stats())


# Register routers
app.include_router(queue_router)
app.include_router(match_router)
app.include_router(court_router)
app.include_router(admin_router)


@app.websocket("/ws")
async def websocket_channel(websocket: WebSocket):
    """Real-time channel: deltas out, team and admin actions in."""
    await channel_websocket(websocket, app.state.authority)
