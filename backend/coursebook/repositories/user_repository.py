# backend/coursebook/repositories/user_repository.py
"""User lookups plus the participant row locks that serialize allocations."""

import logging
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_many(self, user_ids: Iterable[str]) -> List[User]:
        """Users with the given ids, by name; unknown ids are skipped."""
        ids = list(set(user_ids))
        if not ids:
            return []
        return self._execute_query(
            self.db.query(User).filter(User.id.in_(ids)).order_by(User.name, User.id)
        )

    def lock_for_update(self, user_ids: Iterable[str]) -> List[User]:
        """
        Take row locks on the given users, always in ascending id order.

        Every allocation and reschedule locks its trainer and student this
        way, so two writers touching the same person queue up instead of
        both passing the capacity and conflict checks. A fixed lock order
        keeps two writers with swapped roles from deadlocking.
        SQLite has no row locks; FOR UPDATE is dropped by the dialect and the
        database write lock taken by BEGIN IMMEDIATE applies instead.
        """
        ids = sorted(set(user_ids))
        try:
            return (
                self.db.query(User)
                .filter(User.id.in_(ids))
                .order_by(User.id)
                .with_for_update()
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking users {ids}: {str(e)}")
            raise RepositoryException(f"Failed to lock users: {str(e)}") from e
