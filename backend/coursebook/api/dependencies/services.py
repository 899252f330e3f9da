# backend/coursebook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...integrations.google_meet_client import (
    DisabledMeetingClient,
    MeetingProvisioner,
    build_meeting_client,
)
from ...services.allocation_service import AllocationService
from ...services.course_service import CourseService
from ...services.schedule_service import ScheduleService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _google_meeting_client() -> MeetingProvisioner:
    """Shared Google client so its OAuth token survives across requests."""
    return build_meeting_client(settings)


def get_meeting_client() -> MeetingProvisioner:
    if not settings.meeting_provisioning_configured:
        return DisabledMeetingClient()
    return _google_meeting_client()


def get_allocation_service(
    db: Session = Depends(get_db),
    meeting_client: MeetingProvisioner = Depends(get_meeting_client),
) -> AllocationService:
    return AllocationService(db, meeting_client=meeting_client)


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)


def get_course_service(db: Session = Depends(get_db)) -> CourseService:
    return CourseService(db)
