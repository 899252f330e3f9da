# backend/coursebook/models/user.py
"""
User model for the Coursebook platform.

Trainers and students share one table, differentiated by ``role``.
Credentials live with the external auth provider; this table only keeps
the identity and contact details the scheduling engine needs.
"""

import logging
from typing import Any

from sqlalchemy import CheckConstraint, Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    A trainer, student or admin account.

    Attributes:
        id: ULID primary key
        name: Display name (used in meeting titles)
        email: Unique email address, invited to provisioned meetings
        role: One of RoleName
        specialist: Optional trainer specialty shown to students
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default=RoleName.STUDENT.value)
    specialist = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'trainer', 'student')", name="ck_users_role"),
    )

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"

    @property
    def is_trainer(self) -> bool:
        return self.role == RoleName.TRAINER

    def to_summary(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}
