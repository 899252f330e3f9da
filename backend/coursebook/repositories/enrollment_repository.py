# backend/coursebook/repositories/enrollment_repository.py
"""Enrollment queries keyed by the (student, course, trainer) triple."""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.enrollment import Enrollment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EnrollmentRepository(BaseRepository[Enrollment]):
    def __init__(self, db: Session):
        super().__init__(db, Enrollment)

    def find_for_triple(
        self, student_id: str, course_id: str, trainer_id: str, *, for_update: bool = False
    ) -> Optional[Enrollment]:
        try:
            query = self.db.query(Enrollment).filter(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
                Enrollment.trainer_id == trainer_id,
            )
            if for_update:
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting enrollment: {str(e)}")
            raise RepositoryException(f"Failed to get enrollment: {str(e)}") from e

    def list_for_student(
        self, student_id: str, trainer_id: Optional[str] = None
    ) -> List[Enrollment]:
        """Enrollments with their course loaded, newest first."""
        query = (
            self.db.query(Enrollment)
            .options(joinedload(Enrollment.course))
            .filter(Enrollment.student_id == student_id)
        )
        if trainer_id:
            query = query.filter(Enrollment.trainer_id == trainer_id)
        return self._execute_query(query.order_by(Enrollment.created_at.desc()))

    def list_for_trainer(self, trainer_id: str) -> List[Enrollment]:
        """Trainer's enrollments with student and course loaded, newest first."""
        return self._execute_query(
            self.db.query(Enrollment)
            .options(joinedload(Enrollment.student), joinedload(Enrollment.course))
            .filter(Enrollment.trainer_id == trainer_id)
            .order_by(Enrollment.created_at.desc())
        )

    def count_students_enrolled_between(
        self, trainer_id: str, start: datetime, end: datetime
    ) -> int:
        query = self.db.query(func.count(func.distinct(Enrollment.student_id))).filter(
            Enrollment.trainer_id == trainer_id,
            Enrollment.created_at >= start,
            Enrollment.created_at < end,
        )
        return int(self._execute_scalar(query) or 0)
