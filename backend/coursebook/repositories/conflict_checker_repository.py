# backend/coursebook/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the Coursebook platform.

Conflict checking works directly on the schedule's own date and start
time. A schedule blocks a slot for both of its parties: a trainer cannot
teach two overlapping classes and a student cannot attend two.
"""

from datetime import date, time
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.enums import ScheduleStatus
from ..models.class_schedule import ClassSchedule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[ClassSchedule]):
    """Read-only queries backing the slot conflict check."""

    def __init__(self, db: Session):
        super().__init__(db, ClassSchedule)

    def get_schedules_in_window(
        self,
        check_date: date,
        window_start: time,
        window_end: time,
        trainer_id: str,
        student_id: str,
        exclude_schedule_id: Optional[str] = None,
    ) -> List[ClassSchedule]:
        """
        Active schedules on ``check_date`` starting inside [window_start, window_end]
        (both ends inclusive) that involve the trainer or the student.

        Args:
            check_date: The date to check
            window_start: Inclusive lower bound on scheduled_time
            window_end: Inclusive upper bound on scheduled_time
            trainer_id: Trainer of the proposed class
            student_id: Student of the proposed class
            exclude_schedule_id: Schedule to ignore (the one being rescheduled)

        Returns:
            Conflicting schedules ordered by start time
        """
        query = self.db.query(ClassSchedule).filter(
            ClassSchedule.scheduled_date == check_date,
            ClassSchedule.scheduled_time.between(window_start, window_end),
            or_(ClassSchedule.trainer_id == trainer_id, ClassSchedule.student_id == student_id),
            ClassSchedule.status != ScheduleStatus.CANCELLED.value,
        )
        if exclude_schedule_id:
            query = query.filter(ClassSchedule.id != exclude_schedule_id)

        return self._execute_query(query.order_by(ClassSchedule.scheduled_time))
