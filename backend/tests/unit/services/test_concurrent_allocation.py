# backend/tests/unit/services/test_concurrent_allocation.py
"""
Allocations racing on a real file database.

Each worker thread gets its own connection and session, so the database
lock is what serializes them. The entitlement ceiling must hold and every
losing request must end in a typed domain error.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, time, timedelta
import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from coursebook.core.enums import EnrollmentStatus, RoleName, ScheduleStatus
from coursebook.core.exceptions import CapacityExceededException, DomainException
from coursebook.database import Base
from coursebook.database.session_utils import enable_sqlite_savepoints
from coursebook.integrations.google_meet_client import DisabledMeetingClient
from coursebook.models import ClassSchedule, Course, Enrollment, User
from coursebook.services.allocation_service import AllocationService

WORKERS = 6
FIRST_DAY = date(2026, 3, 2)


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'coursebook.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    return sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)


def _seed(session_factory, total_classes):
    with session_factory() as session:
        trainer = User(name="Tara Trainer", email="tara@example.com", role=RoleName.TRAINER.value)
        student = User(name="Sam Student", email="sam@example.com", role=RoleName.STUDENT.value)
        course = Course(title="Python Basics", total_classes=total_classes, rating=4.5)
        session.add_all([trainer, student, course])
        session.flush()
        session.add(
            Enrollment(
                student_id=student.id,
                course_id=course.id,
                trainer_id=trainer.id,
                student_name=student.name,
                status=EnrollmentStatus.TRAINER_ASSIGNED.value,
            )
        )
        session.commit()
        return trainer.id, student.id, course.id


def _race(session_factory, trainer_id, student_id, course_id):
    """Start every worker at once; each books a different day."""
    barrier = threading.Barrier(WORKERS)

    def attempt(index):
        session = session_factory()
        try:
            service = AllocationService(session, meeting_client=DisabledMeetingClient())
            barrier.wait()
            return service.allocate_class(
                trainer_id,
                student_id,
                course_id,
                FIRST_DAY + timedelta(days=index),
                time(10, 0),
            )
        except Exception as exc:
            return exc
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(attempt, range(WORKERS)))


def _active_count(session_factory, student_id, course_id):
    with session_factory() as session:
        return (
            session.query(ClassSchedule)
            .filter(
                ClassSchedule.student_id == student_id,
                ClassSchedule.course_id == course_id,
                ClassSchedule.status != ScheduleStatus.CANCELLED.value,
            )
            .count()
        )


class TestConcurrentAllocation:
    def test_single_seat_has_one_winner(self, session_factory):
        trainer_id, student_id, course_id = _seed(session_factory, total_classes=1)

        outcomes = _race(session_factory, trainer_id, student_id, course_id)

        errors = [o for o in outcomes if isinstance(o, Exception)]
        assert len(outcomes) - len(errors) == 1
        assert all(isinstance(e, DomainException) for e in errors), errors
        assert any(isinstance(e, CapacityExceededException) for e in errors)
        assert _active_count(session_factory, student_id, course_id) == 1

    def test_ceiling_holds_with_several_seats(self, session_factory):
        trainer_id, student_id, course_id = _seed(session_factory, total_classes=3)

        outcomes = _race(session_factory, trainer_id, student_id, course_id)

        winners = [o for o in outcomes if not isinstance(o, Exception)]
        errors = [o for o in outcomes if isinstance(o, Exception)]
        assert len(winners) == 3
        assert sorted(w.order for w in winners) == [1, 2, 3]
        assert all(isinstance(e, DomainException) for e in errors), errors
        assert _active_count(session_factory, student_id, course_id) == 3
