# backend/coursebook/repositories/factory.py
"""
Repository Factory for the Coursebook platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .class_schedule_repository import ClassScheduleRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .course_repository import (
        ClassContentRepository,
        CoursePriceOptionRepository,
        CourseRepository,
    )
    from .enrollment_repository import EnrollmentRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Services ask the factory instead of importing repositories directly,
    which keeps them easy to hand mocks in tests.
    """

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_course_repository(db: Session) -> "CourseRepository":
        from .course_repository import CourseRepository

        return CourseRepository(db)

    @staticmethod
    def create_course_price_option_repository(db: Session) -> "CoursePriceOptionRepository":
        from .course_repository import CoursePriceOptionRepository

        return CoursePriceOptionRepository(db)

    @staticmethod
    def create_class_content_repository(db: Session) -> "ClassContentRepository":
        from .course_repository import ClassContentRepository

        return ClassContentRepository(db)

    @staticmethod
    def create_enrollment_repository(db: Session) -> "EnrollmentRepository":
        from .enrollment_repository import EnrollmentRepository

        return EnrollmentRepository(db)

    @staticmethod
    def create_class_schedule_repository(db: Session) -> "ClassScheduleRepository":
        """Create repository for class schedule (booking) operations."""
        from .class_schedule_repository import ClassScheduleRepository

        return ClassScheduleRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)
