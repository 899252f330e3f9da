# backend/coursebook/repositories/base_repository.py
"""
Base Repository Pattern for the Coursebook platform.

Repositories own every query; services own transactions. A repository
never commits on its own except through ``transaction()``, which a service
opts into explicitly.
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Primary-key CRUD over one SQLAlchemy model.

    Writes flush so generated ids are available, and roll the session back
    before raising RepositoryException on failure.

    Attributes:
        db: SQLAlchemy session (managed by service layer)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def model_name(self) -> str:
        return self.model.__name__

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit on success; roll back and re-raise anything else unchanged."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error("Repository transaction failed: %s", exc)
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            raise

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """Retrieve an entity by primary key, optionally eager loading relations."""
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as exc:
            self.logger.error("Lookup of %s %s failed: %s", self.model_name, id, exc)
            raise RepositoryException(f"Failed to retrieve {self.model_name}: {exc}") from exc

    def create(self, **kwargs: Any) -> T:
        """Add and flush a new entity. Does NOT commit."""
        entity = self.model(**kwargs)
        try:
            self.db.add(entity)
            self.db.flush()
        except IntegrityError as exc:
            self._fail("create", exc, "Integrity constraint violated")
        except SQLAlchemyError as exc:
            self._fail("create", exc, f"Failed to create {self.model_name}")
        return entity

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """Set the given attributes; None when the row is missing."""
        entity = self.get_by_id(id, load_relationships=False)
        if entity is None:
            return None
        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            self._fail("update", exc, f"Failed to update {self.model_name}")
        return entity

    def delete(self, id: str) -> bool:
        """Hard delete; False when the row is missing."""
        entity = self.get_by_id(id, load_relationships=False)
        if entity is None:
            return False
        try:
            self.db.delete(entity)
            self.db.flush()
        except IntegrityError as exc:
            self._fail("delete", exc, "Cannot delete due to existing references")
        except SQLAlchemyError as exc:
            self._fail("delete", exc, f"Failed to delete {self.model_name}")
        return True

    # Protected helpers for subclasses

    def _fail(self, action: str, exc: SQLAlchemyError, message: str) -> NoReturn:
        self.logger.error("Could not %s %s: %s", action, self.model_name, exc)
        self.db.rollback()
        raise RepositoryException(f"{message}: {exc}") from exc

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override in subclasses to add joinedload/selectinload options."""
        return query

    def _execute_query(self, query: Query) -> List[T]:
        try:
            return query.all()
        except SQLAlchemyError as exc:
            self.logger.error("%s query failed: %s", self.model_name, exc)
            raise RepositoryException(f"Query failed: {exc}") from exc

    def _execute_scalar(self, query: Query) -> Any:
        try:
            return query.scalar()
        except SQLAlchemyError as exc:
            self.logger.error("%s scalar query failed: %s", self.model_name, exc)
            raise RepositoryException(f"Scalar query failed: {exc}") from exc
