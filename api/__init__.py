"""REST API module for the sneaker seller marketplace.

This module provides HTTP endpoints for:
- Seller sign-up, login, logout and session/route checks
- Publishing, updating and browsing listings
- Completing and cancelling orders
- Messaging customers, with a realtime WebSocket
- The social feed: posts, comments and likes
- Seller analytics, profile and notifications
- System health monitoring
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings_conf
from database import DatabaseError, DatabaseTimeoutError, close as db_close
from messaging.realtime import feed

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Initializing API...")
    # The database pool is created on first use or by __main__.py

    yield

    # Shutdown
    logger.info("Shutting down API...")
    await feed.stop()
    await db_close()

# Create FastAPI app
app = FastAPI(
    title="Sneaker Seller API",
    description="REST API for sneaker sellers: listings, orders, messages and social feed",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(DatabaseTimeoutError)
async def database_timeout_handler(request: Request, exc: DatabaseTimeoutError):
    logger.error(f"{request.method} {request.url.path} timed out: {exc}")
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={"detail": str(exc)}
    )

@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)}
    )

@app.get("/")
async def root():
    return {
        "name": "Sneaker Seller API",
        "version": "1.0.0",
        "status": "running"
    }

# Import and include all routers
from .auth import router as auth_router
from .listings import router as listings_router
from .orders import router as orders_router
from .messages import router as messages_router, ws_router as messages_ws_router
from .social import router as social_router
from .analytics import router as analytics_router
from .profile import router as profile_router
from .notifications import router as notifications_router
from .system import router as system_router

# Include all routers
app.include_router(auth_router)
app.include_router(listings_router)
app.include_router(orders_router)
app.include_router(messages_router)
app.include_router(messages_ws_router)
app.include_router(social_router)
app.include_router(analytics_router)
app.include_router(profile_router)
app.include_router(notifications_router)
app.include_router(system_router)

# Uploaded images, served at storage_public_url
app.mount(
    "/storage",
    StaticFiles(directory=str(settings_conf['storage_root']), check_dir=False),
    name="storage"
)
