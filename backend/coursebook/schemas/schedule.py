# backend/coursebook/schemas/schedule.py
"""
Class schedule schemas for the Coursebook platform.

Schedules are self-contained: date and start time live on the schedule
itself. Detail responses embed trainer, student, course and class content
and must only be built from schedules loaded with those relations.
"""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.enums import ScheduleStatus
from .base import StandardizedModel, StrictRequestModel
from .course import ClassContentResponse, CourseSummary, UserSummary


class AllocateClassRequest(StrictRequestModel):
    """Book the next class of a course for an enrolled student."""

    student_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)
    scheduled_date: date
    scheduled_time: time
    notes: Optional[str] = Field(None, max_length=2000)
    class_title: Optional[str] = Field(None, max_length=200)
    class_description: Optional[str] = None
    class_duration: Optional[int] = Field(None, gt=0, le=720, description="Minutes")


class BulkAllocationRequest(StrictRequestModel):
    """
    Spreadsheet-style bulk allocation.

    ``allocations`` stays untyped so every row, well formed or not, is
    reported back individually instead of rejecting the whole request.
    """

    allocations: Any = None
    trainer_id: Optional[str] = None


class ScheduleUpdate(StrictRequestModel):
    """Partial update; omitted fields keep their current values."""

    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    status: Optional[ScheduleStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)


class ScheduleResponse(StandardizedModel):
    id: str
    trainer_id: str
    student_id: str
    class_content_id: str
    course_id: str
    scheduled_date: date
    scheduled_time: time
    status: str
    notes: Optional[str] = None
    meet_link: Optional[str] = None
    meeting_event_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScheduleDetailResponse(ScheduleResponse):
    trainer: Optional[UserSummary] = None
    student: Optional[UserSummary] = None
    course: Optional[CourseSummary] = None
    class_content: Optional[ClassContentResponse] = None


class ScheduleEnvelope(StandardizedModel):
    schedule: ScheduleDetailResponse
    message: Optional[str] = None


class ScheduleListResponse(StandardizedModel):
    schedules: List[ScheduleDetailResponse]


class AllocationResponse(StandardizedModel):
    message: str
    schedule: ScheduleResponse
    new_class: ClassContentResponse
    meet_link: Optional[str] = None


class BulkAllocationResponse(StandardizedModel):
    message: str
    successful: List[Dict[str, Any]]
    failed: List[Dict[str, Any]]
    success_count: int
    failure_count: int


class RecentClass(StandardizedModel):
    id: str
    date: str = Field(..., description="ISO date")
    time: str = Field(..., description="ISO start time")
    student: Optional[str] = None
    course: Optional[str] = None
    class_title: Optional[str] = None
    status: str


class TrainerReportStats(StandardizedModel):
    total_completed: int
    total_cancelled: int
    total_students_handled: int


class TrainerReportResponse(StandardizedModel):
    trainer_id: str
    month: str
    stats: TrainerReportStats
    recent_classes: List[RecentClass]
