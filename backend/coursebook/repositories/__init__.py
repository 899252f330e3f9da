# backend/coursebook/repositories/__init__.py
"""
Repository layer for data access, separating business logic from queries.

Usage:
    from coursebook.repositories import RepositoryFactory

    repository = RepositoryFactory.create_class_schedule_repository(db)
    schedules = repository.list_for_trainer(trainer_id)
"""

from .base_repository import BaseRepository
from .class_schedule_repository import ClassScheduleRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .course_repository import (
    ClassContentRepository,
    CoursePriceOptionRepository,
    CourseRepository,
)
from .enrollment_repository import EnrollmentRepository
from .factory import RepositoryFactory
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "RepositoryFactory",
    "UserRepository",
    "CourseRepository",
    "CoursePriceOptionRepository",
    "ClassContentRepository",
    "EnrollmentRepository",
    "ClassScheduleRepository",
    "ConflictCheckerRepository",
]
