# backend/coursebook/repositories/course_repository.py
"""
Course, price option and ClassContent repositories.

ClassContentRepository implements the insert half of the find-or-create
used by the session materializer: the insert runs inside a SAVEPOINT so a
unique-constraint loss to a concurrent creator only rolls back the
savepoint, not the caller's transaction.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.class_schedule import ClassSchedule
from ..models.course import ClassContent, Course, CoursePriceOption
from ..models.enrollment import Enrollment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CourseRepository(BaseRepository[Course]):
    def __init__(self, db: Session):
        super().__init__(db, Course)

    def list_all(self) -> List[Course]:
        return self._execute_query(
            self.db.query(Course)
            .options(selectinload(Course.price_options))
            .order_by(Course.created_at.desc())
        )

    def replace_price_options(
        self, course: Course, options: Sequence[Mapping[str, Any]]
    ) -> List[CoursePriceOption]:
        """Swap the course's price options for ``options``, kept in the given order."""
        try:
            course.price_options = [
                CoursePriceOption(display_order=position, **option)
                for position, option in enumerate(options)
            ]
            self.db.flush()
        except SQLAlchemyError as e:
            self._fail("replace price options of", e, "Failed to save price options")
        return list(course.price_options)

    def delete_with_dependents(self, course_id: str) -> bool:
        """
        Remove a course together with its schedules, enrollments and class contents.

        Dependents go first so the foreign keys never dangle mid-transaction.
        """
        course = self.get_by_id(course_id, load_relationships=False)
        if course is None:
            return False
        try:
            self.db.query(ClassSchedule).filter(ClassSchedule.course_id == course_id).delete(
                synchronize_session=False
            )
            self.db.query(Enrollment).filter(Enrollment.course_id == course_id).delete(
                synchronize_session=False
            )
            self.db.query(ClassContent).filter(ClassContent.course_id == course_id).delete(
                synchronize_session=False
            )
            self.db.delete(course)
            self.db.flush()
            return True
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting course {course_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to delete course: {str(e)}") from e

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(Course.price_options))


class CoursePriceOptionRepository(BaseRepository[CoursePriceOption]):
    def __init__(self, db: Session):
        super().__init__(db, CoursePriceOption)

    def list_all(self) -> List[CoursePriceOption]:
        """Every price option, grouped by course in display order."""
        return self._execute_query(
            self.db.query(CoursePriceOption).order_by(
                CoursePriceOption.course_id, CoursePriceOption.display_order
            )
        )


class ClassContentRepository(BaseRepository[ClassContent]):
    def __init__(self, db: Session):
        super().__init__(db, ClassContent)

    def find_by_course_and_order(self, course_id: str, order: int) -> Optional[ClassContent]:
        try:
            return (
                self.db.query(ClassContent)
                .filter(ClassContent.course_id == course_id, ClassContent.order == order)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding class content {course_id}#{order}: {str(e)}")
            raise RepositoryException(f"Failed to find class content: {str(e)}") from e

    def try_insert(self, **kwargs: Any) -> Optional[ClassContent]:
        """
        Insert a class content row inside a SAVEPOINT.

        Returns None when (course_id, order) already exists; the caller's
        outer transaction stays usable either way.
        """
        entity = ClassContent(**kwargs)
        savepoint = self.db.begin_nested()
        try:
            self.db.add(entity)
            self.db.flush()
        except IntegrityError as exc:
            savepoint.rollback()
            self.logger.info(
                "Class content already materialized concurrently",
                extra={
                    "course_id": kwargs.get("course_id"),
                    "order": kwargs.get("order"),
                    "error": str(exc.orig),
                },
            )
            return None
        savepoint.commit()
        return entity

    def list_for_courses(self, course_ids: Iterable[str]) -> List[ClassContent]:
        ids = list(course_ids)
        if not ids:
            return []
        return self._execute_query(
            self.db.query(ClassContent)
            .filter(ClassContent.course_id.in_(ids))
            .order_by(ClassContent.course_id, ClassContent.order)
        )
