"""
FastAPI dependencies: database sessions, the acting user and services.
"""

from .database import get_db
from .services import (
    get_allocation_service,
    get_course_service,
    get_meeting_client,
    get_schedule_service,
)

__all__ = [
    "get_db",
    "get_meeting_client",
    "get_allocation_service",
    "get_schedule_service",
    "get_course_service",
]
