# backend/coursebook/services/session_materializer.py
"""
Session Materializer for the Coursebook platform

Resolves the ClassContent row for the n-th class of a course, creating it
on first use. Repeated and concurrent calls for the same (course, order)
converge on one row: the insert runs in a SAVEPOINT and a loser re-reads
the winner's row.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from ..models.course import ClassContent, Course
from ..repositories import RepositoryFactory
from ..repositories.course_repository import ClassContentRepository
from .base import BaseService

logger = logging.getLogger(__name__)

# Fields a caller may set on a materialized class content
OVERRIDABLE_FIELDS = ("title", "description", "content", "duration", "thumbnail")


def _non_empty(overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not overrides:
        return {}
    return {
        key: value
        for key, value in overrides.items()
        if key in OVERRIDABLE_FIELDS and value not in (None, "")
    }


class SessionMaterializer(BaseService):
    def __init__(self, db: Session, repository: Optional[ClassContentRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_class_content_repository(db)

    def resolve_content(
        self, course: Course, order: int, overrides: Optional[Mapping[str, Any]] = None
    ) -> ClassContent:
        """
        Find or create the ClassContent at ``order`` for ``course``.

        Args:
            course: Owning course
            order: 1-based class number
            overrides: Optional title/description/content/duration/thumbnail.
                Empty values are ignored, so a set field is never cleared.

        Returns:
            The single ClassContent for (course, order)
        """
        values = _non_empty(overrides)

        existing = self.repository.find_by_course_and_order(course.id, order)
        if existing is not None:
            return self._merge(existing, values)

        created = self.repository.try_insert(
            course_id=course.id,
            order=order,
            title=values.get("title") or f"Class {order} - {course.title}",
            description=values.get("description") or f"Scheduled Class {order}",
            content=values.get("content"),
            duration=values.get("duration") or settings.default_class_duration_minutes,
            thumbnail=values.get("thumbnail"),
            is_dynamic=True,
        )
        if created is not None:
            self.logger.info(
                "Materialized class content",
                extra={"course_id": course.id, "order": order, "class_content_id": created.id},
            )
            return created

        # Lost the insert race; the winner's row is visible now
        winner = self.repository.find_by_course_and_order(course.id, order)
        if winner is None:
            raise ServiceException(
                f"Class content {order} for course {course.id} vanished after a unique conflict"
            )
        return self._merge(winner, values)

    def _merge(self, content: ClassContent, values: Dict[str, Any]) -> ClassContent:
        changed = False
        for key, value in values.items():
            if getattr(content, key) != value:
                setattr(content, key, value)
                changed = True
        if changed:
            self.db.flush()
        return content
