# backend/coursebook/services/enrollment_progress_service.py
"""
Enrollment Progress Service for the Coursebook platform

Derives enrollment completion from schedule state. An enrollment is
completed once the student has no entitlement left AND has completed at
least as many classes as the course grants. Completion is never undone.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.enums import EnrollmentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.class_schedule_repository import ClassScheduleRepository
from ..repositories.enrollment_repository import EnrollmentRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class EnrollmentProgressService(BaseService):
    """
    Recomputes an enrollment's status inside the caller's transaction.

    Nothing here commits; the schedule update that triggered the
    recompute owns the transaction.
    """

    def __init__(
        self,
        db: Session,
        enrollment_repository: Optional[EnrollmentRepository] = None,
        schedule_repository: Optional[ClassScheduleRepository] = None,
    ):
        super().__init__(db)
        self.enrollment_repository = (
            enrollment_repository or RepositoryFactory.create_enrollment_repository(db)
        )
        self.schedule_repository = (
            schedule_repository or RepositoryFactory.create_class_schedule_repository(db)
        )
        self.course_repository = RepositoryFactory.create_course_repository(db)

    @BaseService.measure_operation("recompute_enrollment_progress")
    def recompute_and_maybe_complete(self, student_id: str, course_id: str, trainer_id: str) -> bool:
        """
        Mark the (student, course, trainer) enrollment completed when its classes are done.

        Returns:
            True only when this call performed the transition to completed
        """
        course = self.course_repository.get_by_id(course_id, load_relationships=False)
        if course is None:
            return False

        enrollment = self.enrollment_repository.find_for_triple(
            student_id, course_id, trainer_id, for_update=True
        )
        if enrollment is None or enrollment.is_completed:
            return False

        scheduled_count, completed_count = self.schedule_repository.count_progress_for_enrollment(
            student_id, course_id, trainer_id
        )
        remaining = max(0, course.total_classes - scheduled_count)

        if remaining > 0 or completed_count < course.total_classes:
            logger.debug(
                f"Enrollment {enrollment.id} still in progress: "
                f"{completed_count}/{course.total_classes} completed, {remaining} remaining"
            )
            return False

        enrollment.advance_to(EnrollmentStatus.COMPLETED)
        self.db.flush()
        prometheus_metrics.inc_enrollment_completed()
        self.log_operation(
            "enrollment_completed",
            enrollment_id=enrollment.id,
            student_id=student_id,
            course_id=course_id,
            trainer_id=trainer_id,
        )
        return True
