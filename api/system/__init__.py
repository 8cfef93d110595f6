"""System health endpoint."""

import logging
from typing import Optional

import psutil
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from ..dependencies import get_document_store, get_wallet

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
    blockchain_status: str
    latest_block: Optional[int] = None

@router.get("/health")
async def get_system_health(
    store=Depends(get_document_store),
    wallet=Depends(get_wallet)
) -> SystemHealth:
    """Get system health status.

    Returns:
        SystemHealth object containing system metrics
    """
    cpu_percent = psutil.cpu_percent()
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage('/')

    try:
        db_ok = await store.ping()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_ok = False

    latest_block = None
    chain_ok = await run_in_threadpool(wallet.is_connected)
    if chain_ok:
        try:
            latest_block = await run_in_threadpool(lambda: wallet.w3.eth.block_number)
        except Exception as e:
            logger.warning(f"Failed to read block number: {e}")

    healthy = db_ok and chain_ok and cpu_percent < 80
    return SystemHealth(
        status="healthy" if healthy else "degraded",
        uptime=psutil.boot_time(),
        cpu_usage=cpu_percent,
        memory_usage=memory.percent,
        disk_usage=disk.percent,
        database_status="connected" if db_ok else "unavailable",
        blockchain_status="connected" if chain_ok else "unavailable",
        latest_block=latest_block
    )
