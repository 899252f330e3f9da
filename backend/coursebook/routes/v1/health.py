# backend/coursebook/routes/v1/health.py
"""
Health check endpoint for load balancer probes.
"""

from datetime import datetime, timezone
import logging
from typing import Dict

from fastapi import APIRouter

from ...core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> Dict[str, str]:
    return {
        "status": "healthy",
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
