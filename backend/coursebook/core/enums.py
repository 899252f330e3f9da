# backend/coursebook/core/enums.py
"""
Core enums for the Coursebook platform.

Status values are stored as plain strings; the enums subclass ``str`` so
they compare equal to the persisted values.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles a user account can hold."""

    ADMIN = "admin"
    TRAINER = "trainer"
    STUDENT = "student"


class ScheduleStatus(str, Enum):
    """Lifecycle of a class schedule (a booking)."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED)


class EnrollmentStatus(str, Enum):
    """
    Enrollment progress. Transitions only move forward:
    trainer_assigned -> active -> completed.
    """

    TRAINER_ASSIGNED = "trainer_assigned"
    ACTIVE = "active"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _ENROLLMENT_RANK[self]


_ENROLLMENT_RANK = {
    EnrollmentStatus.TRAINER_ASSIGNED: 0,
    EnrollmentStatus.ACTIVE: 1,
    EnrollmentStatus.COMPLETED: 2,
}
