# backend/coursebook/models/enrollment.py
"""
Enrollment model: the entitlement grant linking a student, a course and
the trainer who teaches it.
"""

from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import EnrollmentStatus
from ..database import Base

logger = logging.getLogger(__name__)


class Enrollment(Base):
    """
    One row per (student, course, trainer).

    ``status`` only ever moves forward; ``advance_to`` ignores backward moves.
    """

    __tablename__ = "enrollments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String(26), ForeignKey("courses.id"), nullable=False, index=True)
    trainer_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_name = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.TRAINER_ASSIGNED.value)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    enrollment_date = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    course = relationship("Course", lazy="raise")
    student = relationship("User", foreign_keys=[student_id], lazy="raise")
    trainer = relationship("User", foreign_keys=[trainer_id], lazy="raise")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "course_id", "trainer_id", name="uq_enrollments_student_course_trainer"
        ),
        CheckConstraint(
            "status IN ('trainer_assigned', 'active', 'completed')",
            name="ck_enrollments_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Enrollment {self.id}: student={self.student_id}, course={self.course_id}, "
            f"trainer={self.trainer_id}, status={self.status}>"
        )

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED

    def advance_to(self, status: EnrollmentStatus) -> bool:
        """Move forward to ``status``; returns False when that would be a step back or a no-op."""
        current = EnrollmentStatus(self.status)
        if status.rank <= current.rank:
            return False
        self.status = status.value
        if status == EnrollmentStatus.COMPLETED:
            self.completed_at = datetime.now(timezone.utc)
        logger.info(f"Enrollment {self.id} moved {current.value} -> {status.value}")
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "trainer_id": self.trainer_id,
            "student_name": self.student_name,
            "status": self.status,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
