# backend/coursebook/models/course.py
"""
Course, CoursePriceOption and ClassContent models.

A course carries the entitlement ceiling (``total_classes``) every enrolled
student may book against. ClassContent rows are the ordinal lesson
definitions of a course; most are materialized lazily by the allocation
engine the first time a given class number is booked.
"""

import logging

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class Course(Base):
    """
    A trainable course.

    Attributes:
        total_classes: Number of non-cancelled classes a student may hold
        rating: Average rating, 0..5
        thumbnail: Object storage key of the cover image (storage is external)
        trainer_id: Optional default trainer
    """

    __tablename__ = "courses"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    thumbnail = Column(String, nullable=True)
    duration = Column(Integer, nullable=False, default=0)
    total_classes = Column(Integer, nullable=False)
    rating = Column(Float, nullable=False, default=0.0)
    trainer_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    price_options = relationship(
        "CoursePriceOption",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CoursePriceOption.display_order",
    )

    __table_args__ = (
        CheckConstraint("total_classes > 0", name="ck_courses_total_classes_positive"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_courses_rating_range"),
    )

    def __repr__(self) -> str:
        return f"<Course {self.id}: {self.title} ({self.total_classes} classes)>"


class CoursePriceOption(Base):
    """
    One purchasable package of a course, e.g. "Monthly - 8 classes" for 4999 INR.

    Options are replaced as a set whenever a course update carries them.
    """

    __tablename__ = "course_price_options"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    course_id = Column(
        String(26), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    label = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    class_count = Column(Integer, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    course = relationship("Course", back_populates="price_options")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_course_price_options_price_non_negative"),
        CheckConstraint(
            "class_count IS NULL OR class_count > 0",
            name="ck_course_price_options_class_count_positive",
        ),
    )

    def __repr__(self) -> str:
        return f"<CoursePriceOption {self.id}: {self.label} {self.price} {self.currency}>"


class ClassContent(Base):
    """
    The n-th lesson of a course.

    (course_id, order) is the identity of a lesson; the unique constraint is
    what lets concurrent allocations converge on a single row.
    """

    __tablename__ = "class_contents"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    course_id = Column(String(26), ForeignKey("courses.id"), nullable=False, index=True)
    order = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=60)
    thumbnail = Column(String, nullable=True)
    is_dynamic = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("course_id", "order", name="uq_class_contents_course_order"),
        CheckConstraint('"order" >= 1', name="ck_class_contents_order_positive"),
        CheckConstraint("duration > 0", name="ck_class_contents_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<ClassContent {self.id}: course={self.course_id} order={self.order}>"
