"""
Health Check Endpoint
"""
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, status

from genie_gateway.infrastructure.providers import ProviderFactory

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint for Docker and monitoring systems.

    Returns:
        Dict with status, timestamp and the registered providers
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "market-genie-gateway",
        "providers": sorted(ProviderFactory.list_providers()),
    }


@router.get("/", status_code=status.HTTP_200_OK)
async def root() -> Dict[str, str]:
    return {
        "message": "Market Genie Integration Gateway",
        "version": "1.0.0",
        "docs": "/docs"
    }
