"""System health endpoint."""

import logging
import time
from typing import Optional

import psutil
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_pool_factory

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/system",
    tags=["System"]
)

class SystemHealth(BaseModel):
    """Model for system health data."""
    status: str
    uptime: float
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    database_status: str
    database_error: Optional[str] = None

async def check_database(get_pool_fn) -> Optional[str]:
    """Return None when the database answers, else the failure message."""
    try:
        pool = await get_pool_fn()
        async with pool.acquire() as conn:
            await conn.fetchval('SELECT 1')
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return str(e)
    return None

@router.get("/health")
async def get_system_health(
    get_pool_fn=Depends(get_pool_factory)
) -> SystemHealth:
    """Get system health status.

    Returns:
        SystemHealth object containing process and database status
    """
    cpu_percent = psutil.cpu_percent()
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage('/')
    process = psutil.Process()

    db_error = await check_database(get_pool_fn)
    healthy = db_error is None and cpu_percent < 80

    return SystemHealth(
        status="healthy" if healthy else "degraded",
        uptime=time.time() - process.create_time(),
        cpu_usage=cpu_percent,
        memory_usage=memory.percent,
        disk_usage=disk.percent,
        database_status="connected" if db_error is None else "disconnected",
        database_error=db_error
    )
