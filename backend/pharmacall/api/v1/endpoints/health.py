"""
Health Check Endpoint
Provides health status for Docker health checks and monitoring
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from pharmacall.core.config import Settings, get_settings
from pharmacall.core.validation import ProviderValidator
from pharmacall.domain.models.call_request import utc_now

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Health check endpoint for Docker and monitoring systems.

    Returns:
        Dict with status, timestamp and which capabilities are configured
    """
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "pharmacall-backend",
        "storeBackend": settings.store_backend,
        "capabilities": ProviderValidator(settings).capabilities(),
    }


@router.get("/", status_code=status.HTTP_200_OK)
async def root() -> Dict[str, str]:
    """
    Root endpoint.

    Returns:
        Welcome message
    """
    return {
        "message": "Pharmacist Call Queue API",
        "version": "1.0.0",
        "docs": "/docs"
    }
