# backend/coursebook/services/capacity_gate.py
"""
Entitlement checks: how many more classes a student may book in a course.

Entitlement is counted per (student, course) across every trainer; only
non-cancelled schedules consume it.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import CapacityExceededException
from ..models.course import Course
from ..repositories import RepositoryFactory
from ..repositories.class_schedule_repository import ClassScheduleRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class CapacityGate(BaseService):
    def __init__(self, db: Session, repository: Optional[ClassScheduleRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_class_schedule_repository(db)

    def get_scheduled_count(self, student_id: str, course_id: str) -> int:
        return self.repository.count_active_for_student_course(student_id, course_id)

    def remaining(self, student_id: str, course: Course) -> int:
        """Classes the student can still book; never negative."""
        scheduled = self.get_scheduled_count(student_id, course.id)
        return max(0, course.total_classes - scheduled)

    def ensure_capacity(self, student_id: str, course: Course) -> int:
        """
        Raise CapacityExceededException when the entitlement is used up.

        Returns:
            The current scheduled count, so the caller can derive the next class order
        """
        scheduled = self.get_scheduled_count(student_id, course.id)
        if scheduled >= course.total_classes:
            self.logger.info(
                f"Capacity reached for student {student_id} in course {course.id}: "
                f"{scheduled}/{course.total_classes}"
            )
            raise CapacityExceededException(scheduled, course.total_classes)
        return scheduled
