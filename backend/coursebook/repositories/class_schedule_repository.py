# backend/coursebook/repositories/class_schedule_repository.py
"""
ClassSchedule Repository for the Coursebook platform.

This repository handles:
- Schedule CRUD (integrity errors surface raw for conflict handling)
- Entitlement and progress counts
- Participant listings ordered by (date, time)
- Eager loading of trainer, student, course and class content
"""

from datetime import date
import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import ScheduleStatus
from ..core.exceptions import RepositoryException
from ..models.class_schedule import ClassSchedule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClassScheduleRepository(BaseRepository[ClassSchedule]):
    def __init__(self, db: Session):
        super().__init__(db, ClassSchedule)

    def create(self, **kwargs: Any) -> ClassSchedule:
        """Create a schedule, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def _apply_eager_loading(self, query: Query) -> Query:
        # populate_existing: rows already in the session still get their relations filled
        return query.options(
            joinedload(ClassSchedule.trainer),
            joinedload(ClassSchedule.student),
            joinedload(ClassSchedule.course),
            joinedload(ClassSchedule.class_content),
        ).populate_existing()

    def get_schedule_with_details(self, schedule_id: str) -> Optional[ClassSchedule]:
        return self.get_by_id(schedule_id, load_relationships=True)

    def get_for_update(self, schedule_id: str) -> Optional[ClassSchedule]:
        """Row-locked read used before mutating a schedule."""
        try:
            return (
                self.db.query(ClassSchedule)
                .filter(ClassSchedule.id == schedule_id)
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking schedule {schedule_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock schedule: {str(e)}") from e

    # Counts

    def count_active_for_student_course(self, student_id: str, course_id: str) -> int:
        """Non-cancelled schedules of a student in a course, across all trainers."""
        query = self.db.query(func.count(ClassSchedule.id)).filter(
            ClassSchedule.student_id == student_id,
            ClassSchedule.course_id == course_id,
            ClassSchedule.status != ScheduleStatus.CANCELLED.value,
        )
        return int(self._execute_scalar(query) or 0)

    def count_progress_for_enrollment(
        self, student_id: str, course_id: str, trainer_id: str
    ) -> tuple[int, int]:
        """Return (scheduled_count, completed_count) for one enrollment triple."""
        rows = self._execute_query(
            self.db.query(ClassSchedule.status, func.count(ClassSchedule.id))
            .filter(
                ClassSchedule.student_id == student_id,
                ClassSchedule.course_id == course_id,
                ClassSchedule.trainer_id == trainer_id,
            )
            .group_by(ClassSchedule.status)
        )
        by_status = {status: count for status, count in rows}
        scheduled = sum(
            count for status, count in by_status.items() if status != ScheduleStatus.CANCELLED
        )
        completed = by_status.get(ScheduleStatus.COMPLETED.value, 0)
        return scheduled, completed

    # Listings

    def list_for_student(self, student_id: str) -> List[ClassSchedule]:
        return self._execute_query(
            self._apply_eager_loading(self.db.query(ClassSchedule))
            .filter(ClassSchedule.student_id == student_id)
            .order_by(ClassSchedule.scheduled_date.asc(), ClassSchedule.scheduled_time.asc())
        )

    def list_for_trainer(self, trainer_id: str) -> List[ClassSchedule]:
        return self._execute_query(
            self._apply_eager_loading(self.db.query(ClassSchedule))
            .filter(ClassSchedule.trainer_id == trainer_id)
            .order_by(ClassSchedule.scheduled_date.asc(), ClassSchedule.scheduled_time.asc())
        )

    def list_for_trainer_between(
        self, trainer_id: str, start_date: date, end_date: date
    ) -> List[ClassSchedule]:
        """Trainer schedules dated within [start_date, end_date], details loaded."""
        return self._execute_query(
            self._apply_eager_loading(self.db.query(ClassSchedule))
            .filter(
                ClassSchedule.trainer_id == trainer_id,
                ClassSchedule.scheduled_date >= start_date,
                ClassSchedule.scheduled_date <= end_date,
            )
            .order_by(ClassSchedule.scheduled_date.desc(), ClassSchedule.scheduled_time.desc())
        )

    def list_for_student_courses(
        self, student_id: str, course_ids: Iterable[str], trainer_id: Optional[str] = None
    ) -> List[ClassSchedule]:
        ids = list(course_ids)
        if not ids:
            return []
        query = self.db.query(ClassSchedule).filter(
            ClassSchedule.student_id == student_id,
            ClassSchedule.course_id.in_(ids),
        )
        if trainer_id:
            query = query.filter(ClassSchedule.trainer_id == trainer_id)
        return self._execute_query(query)
