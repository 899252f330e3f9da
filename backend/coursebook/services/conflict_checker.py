# backend/coursebook/services/conflict_checker.py
"""
Conflict Checker Service for the Coursebook platform

Answers whether a proposed class start collides with an existing,
non-cancelled schedule of either party. A class occupies a window of
``conflict_window_minutes`` on both sides of its start time; windows never
cross midnight.
"""

from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)


def conflict_window(
    scheduled_date: date, scheduled_time: time, window_minutes: int
) -> Tuple[time, time]:
    """Inclusive [start, end] window around ``scheduled_time``, clamped to the same day."""
    start_of_day = datetime.combine(scheduled_date, time.min)
    end_of_day = datetime.combine(scheduled_date, time.max)
    moment = datetime.combine(scheduled_date, scheduled_time)
    delta = timedelta(minutes=window_minutes)

    window_start = max(moment - delta, start_of_day)
    window_end = min(moment + delta, end_of_day)
    return window_start.time(), window_end.time()


class ConflictChecker(BaseService):
    """
    Slot conflict detection for trainers and students.

    Pure reads: nothing here mutates state.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        window_minutes: Optional[int] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)
        self.window_minutes = (
            settings.conflict_window_minutes if window_minutes is None else window_minutes
        )

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        scheduled_date: date,
        scheduled_time: time,
        trainer_id: str,
        student_id: str,
        exclude_schedule_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        List the schedules that block the proposed slot.

        Args:
            scheduled_date: Date of the proposed class
            scheduled_time: Start time of the proposed class
            trainer_id: Trainer of the proposed class
            student_id: Student of the proposed class
            exclude_schedule_id: Schedule to ignore, used when rescheduling

        Returns:
            One dict per conflicting schedule, naming which party clashes
        """
        window_start, window_end = conflict_window(
            scheduled_date, scheduled_time, self.window_minutes
        )
        schedules = self.repository.get_schedules_in_window(
            scheduled_date,
            window_start,
            window_end,
            trainer_id,
            student_id,
            exclude_schedule_id=exclude_schedule_id,
        )

        conflicts = []
        for schedule in schedules:
            parties = []
            if schedule.trainer_id == trainer_id:
                parties.append("trainer")
            if schedule.student_id == student_id:
                parties.append("student")
            conflicts.append(
                {
                    "schedule_id": schedule.id,
                    "scheduled_date": schedule.scheduled_date.isoformat(),
                    "scheduled_time": schedule.scheduled_time.isoformat(),
                    "status": schedule.status,
                    "conflicting_party": "+".join(parties),
                }
            )

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} schedule conflicts for trainer {trainer_id} / "
                f"student {student_id} on {scheduled_date} between {window_start}-{window_end}"
            )

        return conflicts

    def has_conflict(
        self,
        scheduled_date: date,
        scheduled_time: time,
        trainer_id: str,
        student_id: str,
        exclude_schedule_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.find_conflicts(
                scheduled_date,
                scheduled_time,
                trainer_id,
                student_id,
                exclude_schedule_id=exclude_schedule_id,
            )
        )
