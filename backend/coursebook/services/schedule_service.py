# backend/coursebook/services/schedule_service.py
"""
Schedule Service for the Coursebook platform

Lifecycle of booked classes after allocation:
- scheduled -> completed | cancelled, both terminal
- participants (trainer or student) may read and update a schedule
- only the trainer may delete it
- completing a class re-derives the enrollment's progress
"""

from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ScheduleStatus
from ..core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..models.class_schedule import ClassSchedule
from ..repositories import RepositoryFactory
from ..repositories.class_schedule_repository import ClassScheduleRepository
from .base import BaseService
from .conflict_checker import ConflictChecker
from .enrollment_progress_service import EnrollmentProgressService

logger = logging.getLogger(__name__)

RECENT_CLASSES_LIMIT = 5


def month_bounds(day: date) -> tuple[date, date]:
    """First and last calendar day of the month containing ``day``."""
    first = day.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return first, next_first - timedelta(days=1)


class ScheduleService(BaseService):
    """
    Reads and mutates existing class schedules.

    Status moves are validated here; a reschedule is checked against the
    slot conflict rules like a fresh allocation, ignoring the schedule
    itself.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ClassScheduleRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        progress_service: Optional[EnrollmentProgressService] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_class_schedule_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.progress_service = progress_service or EnrollmentProgressService(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.enrollment_repository = RepositoryFactory.create_enrollment_repository(db)

    @BaseService.measure_operation("update_schedule")
    def update_schedule(
        self, schedule_id: str, patch: Mapping[str, Any], actor_id: str
    ) -> ClassSchedule:
        """
        Apply a partial update to a schedule.

        Args:
            schedule_id: Schedule to update
            patch: Provided fields among scheduled_date, scheduled_time, status
                and notes. Empty date/time/status values keep the current
                value; a provided ``notes`` key is always applied, None clears it.
            actor_id: Acting user, must be the trainer or the student

        Raises:
            NotFoundException: Unknown schedule
            ForbiddenException: Actor is not a participant
            ValidationException: Leaving a terminal status, or unknown status
            BookingConflictException: New slot collides with another schedule

        Returns:
            The updated schedule with trainer, student, course and class content loaded
        """
        with self.transaction():
            schedule = self.repository.get_for_update(schedule_id)
            if schedule is None:
                raise NotFoundException("Schedule not found")
            if not schedule.is_participant(actor_id):
                raise ForbiddenException("Access denied")

            current = ScheduleStatus(schedule.status)
            target = self._resolve_status(patch.get("status"), current)
            if current.is_terminal and target != current:
                raise ValidationException(
                    f"Cannot change status of a {current.value} schedule",
                    code="TERMINAL_STATUS",
                    details={"current_status": current.value, "requested_status": target.value},
                )

            new_date: date = patch.get("scheduled_date") or schedule.scheduled_date
            new_time: time = patch.get("scheduled_time") or schedule.scheduled_time
            rescheduled = new_date != schedule.scheduled_date or new_time != schedule.scheduled_time

            if (
                rescheduled
                and target != ScheduleStatus.CANCELLED
                and settings.enforce_conflicts_on_reschedule
            ):
                self.user_repository.lock_for_update([schedule.trainer_id, schedule.student_id])
                conflicts = self.conflict_checker.find_conflicts(
                    new_date,
                    new_time,
                    schedule.trainer_id,
                    schedule.student_id,
                    exclude_schedule_id=schedule.id,
                )
                if conflicts:
                    raise BookingConflictException(details={"conflicts": conflicts})

            schedule.scheduled_date = new_date
            schedule.scheduled_time = new_time
            schedule.status = target.value
            if "notes" in patch:
                schedule.notes = patch["notes"]
            self.db.flush()

            if target == ScheduleStatus.COMPLETED:
                self.progress_service.recompute_and_maybe_complete(
                    schedule.student_id, schedule.course_id, schedule.trainer_id
                )

        self.log_operation(
            "update_schedule",
            schedule_id=schedule_id,
            actor_id=actor_id,
            status=target.value,
            rescheduled=rescheduled,
        )
        updated = self.repository.get_schedule_with_details(schedule_id)
        if updated is None:
            raise NotFoundException("Schedule not found")
        return updated

    @BaseService.measure_operation("delete_schedule")
    def delete_schedule(self, schedule_id: str, actor_id: str) -> None:
        """
        Hard-delete a schedule. Only its trainer may do this.

        A completed enrollment stays completed; progress is not recomputed.
        """
        with self.transaction():
            schedule = self.repository.get_by_id(schedule_id, load_relationships=False)
            if schedule is None:
                raise NotFoundException("Schedule not found")
            if schedule.trainer_id != actor_id:
                raise ForbiddenException("Only trainer can delete")
            self.repository.delete(schedule_id)

        self.log_operation("delete_schedule", schedule_id=schedule_id, actor_id=actor_id)

    def get_schedule_for_user(self, schedule_id: str, actor_id: str) -> ClassSchedule:
        schedule = self.repository.get_schedule_with_details(schedule_id)
        if schedule is None:
            raise NotFoundException("Schedule not found")
        if not schedule.is_participant(actor_id):
            raise ForbiddenException("Access denied")
        return schedule

    def list_schedules(
        self, *, student_id: Optional[str] = None, trainer_id: Optional[str] = None
    ) -> List[ClassSchedule]:
        """Schedules of one student or one trainer, ascending by (date, time)."""
        if student_id and trainer_id:
            raise ValidationException("Pass either student_id or trainer_id, not both")
        if student_id:
            return self.repository.list_for_student(student_id)
        if trainer_id:
            return self.repository.list_for_trainer(trainer_id)
        raise ValidationException("Student ID or trainer ID required")

    @BaseService.measure_operation("get_trainer_report")
    def get_trainer_report(self, trainer_id: str, month: Optional[date] = None) -> Dict[str, Any]:
        """
        Monthly statistics for a trainer.

        Args:
            trainer_id: Trainer to report on
            month: Any day of the month to report; defaults to the current month

        Returns:
            Dict with trainerId, month label, stats and the five most recent
            completed classes
        """
        first_day, last_day = month_bounds(month or date.today())
        schedules = self.repository.list_for_trainer_between(trainer_id, first_day, last_day)

        completed = [s for s in schedules if s.status == ScheduleStatus.COMPLETED]
        cancelled_count = sum(1 for s in schedules if s.status == ScheduleStatus.CANCELLED)

        period_start = datetime.combine(first_day, time.min, tzinfo=timezone.utc)
        period_end = datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=timezone.utc)
        students_handled = self.enrollment_repository.count_students_enrolled_between(
            trainer_id, period_start, period_end
        )

        recent_classes = [
            {
                "id": s.id,
                "date": s.scheduled_date.isoformat(),
                "time": s.scheduled_time.isoformat(),
                "student": s.student.name if s.student else None,
                "course": s.course.title if s.course else None,
                "classTitle": s.class_content.title if s.class_content else None,
                "status": s.status,
            }
            for s in completed[:RECENT_CLASSES_LIMIT]
        ]

        return {
            "trainerId": trainer_id,
            "month": first_day.strftime("%B %Y"),
            "stats": {
                "totalCompleted": len(completed),
                "totalCancelled": cancelled_count,
                "totalStudentsHandled": students_handled,
            },
            "recentClasses": recent_classes,
        }

    @staticmethod
    def _resolve_status(requested: Any, current: ScheduleStatus) -> ScheduleStatus:
        if not requested:
            return current
        try:
            return ScheduleStatus(requested)
        except ValueError as exc:
            raise ValidationException(
                f"Unknown schedule status: {requested!r}", code="INVALID_STATUS"
            ) from exc
