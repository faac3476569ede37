"""System health endpoint."""

import logging
import time
from datetime import datetime

import psutil
from fastapi import APIRouter
from pydantic import BaseModel

from database import get_pool

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/system",
    tags=["System"]
)

STARTED_AT = time.time()

class SystemHealth(BaseModel):
    """Model for system health data."""
    status: str
    uptime: float
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    database_status: str
    active_connections: int = 0
    checked_at: datetime

@router.get("/health", response_model=SystemHealth)
async def get_system_health() -> SystemHealth:
    """Get system health status.

    Returns:
        SystemHealth object containing host and database metrics
    """
    cpu_percent = psutil.cpu_percent()
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage('/')

    active_connections = 0
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            active_connections = await conn.fetchval(
                '''
                SELECT COUNT(*)
                FROM pg_stat_activity
                WHERE state = 'active'
                '''
            )
        db_status = "connected"
    except Exception as e:
        logger.error(f"Health check could not reach the database: {e}")
        db_status = "unavailable"

    if db_status != "connected":
        overall = "unhealthy"
    elif cpu_percent >= 80 or memory.percent >= 90:
        overall = "degraded"
    else:
        overall = "healthy"

    return SystemHealth(
        status=overall,
        uptime=time.time() - STARTED_AT,
        cpu_usage=cpu_percent,
        memory_usage=memory.percent,
        disk_usage=disk.percent,
        database_status=db_status,
        active_connections=active_connections or 0,
        checked_at=datetime.utcnow()
    )
