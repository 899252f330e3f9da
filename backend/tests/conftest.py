# backend/tests/conftest.py
"""
Shared fixtures for the Coursebook test suite.

Every test gets its own in-memory SQLite database with SAVEPOINT support,
so services may commit and roll back freely without leaking state.
"""

from datetime import date, time
import itertools
import os
from typing import Callable, Dict, Optional

# Never pick up a developer .env (Google credentials, database URL) in tests
os.environ.setdefault("CI", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from coursebook.api.dependencies import get_db, get_meeting_client  # noqa: E402
from coursebook.auth import create_access_token  # noqa: E402
from coursebook.core.enums import EnrollmentStatus, RoleName, ScheduleStatus  # noqa: E402
from coursebook.database import Base  # noqa: E402
from coursebook.database.session_utils import enable_sqlite_savepoints  # noqa: E402
from coursebook.integrations.google_meet_client import FakeMeetingClient  # noqa: E402
from coursebook.main import app  # noqa: E402
import coursebook.models  # noqa: E402,F401
from coursebook.models import ClassContent, ClassSchedule, Course, Enrollment, User  # noqa: E402


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(test_engine)
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    """A session on a fresh database; commits are real but die with the engine."""
    TestSessionLocal = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestSessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def fake_meeting_client() -> FakeMeetingClient:
    return FakeMeetingClient()


@pytest.fixture
def client(db: Session, fake_meeting_client: FakeMeetingClient):
    """Create a test client with the test database and a fake meeting provider."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_meeting_client] = lambda: fake_meeting_client

    # Don't use context manager - lifespan would create tables on the app engine
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


# ============================================================================
# DATA FACTORIES
# ============================================================================


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = itertools.count(1)

    def _make(
        role: RoleName = RoleName.STUDENT,
        name: Optional[str] = None,
        specialist: Optional[str] = None,
    ) -> User:
        n = next(counter)
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=f"{role.value}{n}@example.com",
            role=role.value,
            specialist=specialist,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def trainer(make_user) -> User:
    return make_user(RoleName.TRAINER, name="Tara Trainer", specialist="Python")


@pytest.fixture
def student(make_user) -> User:
    return make_user(RoleName.STUDENT, name="Sam Student")


@pytest.fixture
def make_course(db: Session) -> Callable[..., Course]:
    def _make(total_classes: int = 3, title: str = "Python Basics", **kwargs) -> Course:
        course = Course(title=title, total_classes=total_classes, rating=4.5, **kwargs)
        db.add(course)
        db.commit()
        return course

    return _make


@pytest.fixture
def course(make_course) -> Course:
    return make_course(total_classes=3)


@pytest.fixture
def make_enrollment(db: Session) -> Callable[..., Enrollment]:
    def _make(
        student: User,
        course: Course,
        trainer: User,
        status: EnrollmentStatus = EnrollmentStatus.TRAINER_ASSIGNED,
    ) -> Enrollment:
        enrollment = Enrollment(
            student_id=student.id,
            course_id=course.id,
            trainer_id=trainer.id,
            student_name=student.name,
            status=status.value,
        )
        db.add(enrollment)
        db.commit()
        return enrollment

    return _make


@pytest.fixture
def enrollment(make_enrollment, student, course, trainer) -> Enrollment:
    return make_enrollment(student, course, trainer)


@pytest.fixture
def make_schedule(db: Session) -> Callable[..., ClassSchedule]:
    """Insert a schedule directly, materializing a class content for it."""

    def _make(
        trainer: User,
        student: User,
        course: Course,
        scheduled_date: date,
        scheduled_time: time,
        status: ScheduleStatus = ScheduleStatus.SCHEDULED,
        order: Optional[int] = None,
    ) -> ClassSchedule:
        if order is None:
            order = (
                db.query(ClassContent).filter(ClassContent.course_id == course.id).count() + 1
            )
        content = (
            db.query(ClassContent)
            .filter(ClassContent.course_id == course.id, ClassContent.order == order)
            .first()
        )
        if content is None:
            content = ClassContent(
                course_id=course.id, order=order, title=f"Lesson {order}", duration=60
            )
            db.add(content)
            db.flush()
        schedule = ClassSchedule(
            trainer_id=trainer.id,
            student_id=student.id,
            course_id=course.id,
            class_content_id=content.id,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            status=status.value,
        )
        db.add(schedule)
        db.commit()
        return schedule

    return _make


@pytest.fixture
def auth_headers_for() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
