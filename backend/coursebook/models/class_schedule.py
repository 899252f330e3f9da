# backend/coursebook/models/class_schedule.py
"""
ClassSchedule model: a booked class between a trainer and a student.

Schedules are self-contained records: they carry the date and start time
directly and point at the ClassContent that was materialized for them.
Related rows are never lazy-loaded; repositories eager load what a caller
needs.
"""

from datetime import date
import logging
from typing import Any, cast

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, String, Text, Time
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import ScheduleStatus
from ..database import Base

logger = logging.getLogger(__name__)


class ClassSchedule(Base):
    """
    A scheduled class.

    Lifecycle: scheduled -> completed | cancelled (both terminal).
    ``meet_link``/``meeting_event_id`` stay NULL when meeting provisioning
    failed; that is a permanent, valid state.
    """

    __tablename__ = "class_schedules"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    trainer_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    class_content_id = Column(String(26), ForeignKey("class_contents.id"), nullable=False)
    course_id = Column(String(26), ForeignKey("courses.id"), nullable=False, index=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)

    status = Column(String(20), nullable=False, default=ScheduleStatus.SCHEDULED.value, index=True)
    notes = Column(Text, nullable=True)

    meet_link = Column(String, nullable=True)
    meeting_event_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    trainer = relationship("User", foreign_keys=[trainer_id], lazy="raise")
    student = relationship("User", foreign_keys=[student_id], lazy="raise")
    course = relationship("Course", lazy="raise")
    class_content = relationship("ClassContent", lazy="raise")

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="ck_class_schedules_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassSchedule {self.id}: trainer={self.trainer_id}, student={self.student_id}, "
            f"date={self.scheduled_date}, time={self.scheduled_time}, status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        """Non-cancelled schedules count against entitlement and block slots."""
        return self.status != ScheduleStatus.CANCELLED

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.trainer_id, self.student_id)

    def to_dict(self) -> dict[str, Any]:
        """Column values only; relationships are never touched here."""
        scheduled_date = cast(date, self.scheduled_date)
        return {
            "id": self.id,
            "trainer_id": self.trainer_id,
            "student_id": self.student_id,
            "class_content_id": self.class_content_id,
            "course_id": self.course_id,
            "scheduled_date": scheduled_date.isoformat() if scheduled_date else None,
            "scheduled_time": self.scheduled_time.isoformat() if self.scheduled_time else None,
            "status": self.status,
            "notes": self.notes,
            "meet_link": self.meet_link,
            "meeting_event_id": self.meeting_event_id,
        }


Index(
    "ix_class_schedules_date_time",
    ClassSchedule.scheduled_date,
    ClassSchedule.scheduled_time,
)

Index(
    "ix_class_schedules_student_course_status",
    ClassSchedule.student_id,
    ClassSchedule.course_id,
    ClassSchedule.status,
)
