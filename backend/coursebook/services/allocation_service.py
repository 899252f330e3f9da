# backend/coursebook/services/allocation_service.py
"""
Allocation Service for the Coursebook platform

Books classes for enrolled students, singly or in bulk:
- Participant row locks serialize bookings per trainer and per student
- Slot conflicts, enrollment and entitlement are checked under those locks
- The n-th class content of the course is materialized on first booking
- Meeting links are provisioned after commit, once, best effort
"""

from dataclasses import dataclass, field
from datetime import date, time
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import EnrollmentStatus, ScheduleStatus
from ..core.exceptions import (
    BookingConflictException,
    DomainException,
    ExternalServiceDegradedException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..integrations.google_meet_client import (
    MeetingDetails,
    MeetingProvisioner,
    build_meeting_client,
)
from ..models.class_schedule import ClassSchedule
from ..models.course import ClassContent
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .capacity_gate import CapacityGate
from .conflict_checker import ConflictChecker
from .session_materializer import SessionMaterializer

logger = logging.getLogger(__name__)

# SQLSTATE codes for deadlock_detected and serialization_failure
RETRYABLE_SQLSTATES = frozenset({"40P01", "40001"})
# Driver messages for the same failures when no SQLSTATE is exposed
LOCK_CONTENTION_MARKERS = ("deadlock detected", "could not serialize access", "database is locked")

BULK_REQUIRED_FIELDS = ("studentId", "courseId", "classTitle", "scheduledDate", "scheduledTime")
BULK_FIRST_DATA_ROW = 2


@dataclass(frozen=True)
class ClassMeta:
    """Caller supplied details for the booked class."""

    title: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    notes: Optional[str] = None

    def content_overrides(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "content": self.description,
            "duration": self.duration,
        }


@dataclass
class AllocationResult:
    schedule: ClassSchedule
    class_content: ClassContent
    order: int
    meeting: MeetingDetails = field(default_factory=MeetingDetails)

    @property
    def message(self) -> str:
        return f"Class {self.class_content.title} (Order {self.order}) allocated"


@dataclass
class BulkAllocationResult:
    """Per-row outcome of a bulk allocation. Every input row lands in exactly one list."""

    successful: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.successful)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def succeeded(self) -> bool:
        return self.success_count > 0

    @property
    def message(self) -> str:
        return (
            f"Bulk allocation completed. {self.success_count} successful, "
            f"{self.failure_count} failed."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "successful": self.successful,
            "failed": self.failed,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
        }


@dataclass
class _BookedClass:
    schedule: ClassSchedule
    class_content: ClassContent
    order: int
    trainer: User
    student: User


def _is_lock_contention(exc: BaseException) -> bool:
    """True for deadlocks and lock timeouts, possibly wrapped by a repository."""
    if isinstance(exc, RepositoryException):
        inner = exc.__cause__ or exc.__context__
        return inner is not None and _is_lock_contention(inner)
    if not isinstance(exc, OperationalError):
        return False
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in LOCK_CONTENTION_MARKERS)


def parse_schedule_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationException(f"Invalid scheduledDate: {value!r}", code="INVALID_DATE") from exc


def parse_schedule_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationException(f"Invalid scheduledTime: {value!r}", code="INVALID_TIME") from exc


def _parse_duration(value: Any) -> int:
    if value is None or value == "":
        return settings.default_class_duration_minutes
    try:
        duration = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationException(f"Invalid duration: {value!r}", code="INVALID_DURATION") from exc
    if duration <= 0:
        raise ValidationException(f"Invalid duration: {value!r}", code="INVALID_DURATION")
    return duration


class AllocationService(BaseService):
    """
    Books classes against a student's course entitlement.

    All checks for one booking run inside a single transaction that holds
    row locks on the trainer and the student, so concurrent bookings for
    the same people cannot both pass the capacity and conflict checks.
    """

    def __init__(
        self,
        db: Session,
        meeting_client: Optional[MeetingProvisioner] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        capacity_gate: Optional[CapacityGate] = None,
        materializer: Optional[SessionMaterializer] = None,
    ):
        super().__init__(db)
        self.meeting_client = meeting_client or build_meeting_client(settings)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.capacity_gate = capacity_gate or CapacityGate(db)
        self.materializer = materializer or SessionMaterializer(db)

        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.course_repository = RepositoryFactory.create_course_repository(db)
        self.enrollment_repository = RepositoryFactory.create_enrollment_repository(db)
        self.schedule_repository = RepositoryFactory.create_class_schedule_repository(db)

    @BaseService.measure_operation("allocate_class")
    def allocate_class(
        self,
        trainer_id: str,
        student_id: str,
        course_id: str,
        scheduled_date: date,
        scheduled_time: time,
        meta: Optional[ClassMeta] = None,
    ) -> AllocationResult:
        """
        Book the next class of a course for an enrolled student.

        Checks run in this order: trainer, student and course exist; the
        student is enrolled with this trainer; the slot is free for both
        parties; entitlement remains.

        Raises:
            NotFoundException: Unknown trainer, student or course
            ForbiddenException: No enrollment for (student, course, trainer)
            BookingConflictException: Slot taken, or lost a concurrent race
            CapacityExceededException: Entitlement used up

        Returns:
            AllocationResult with the committed schedule and its class content
        """
        self.log_operation(
            "allocate_class",
            trainer_id=trainer_id,
            student_id=student_id,
            course_id=course_id,
            scheduled_date=str(scheduled_date),
            scheduled_time=str(scheduled_time),
        )
        try:
            booked = self._book_with_retries(
                trainer_id,
                student_id,
                course_id,
                scheduled_date,
                scheduled_time,
                meta or ClassMeta(),
                check_conflicts=True,
            )
        except DomainException as exc:
            prometheus_metrics.inc_class_allocation("single", exc.code)
            raise
        prometheus_metrics.inc_class_allocation("single", "success")

        meeting = self._attach_meeting(booked, scheduled_date, scheduled_time)
        return AllocationResult(
            schedule=booked.schedule,
            class_content=booked.class_content,
            order=booked.order,
            meeting=meeting,
        )

    @BaseService.measure_operation("bulk_allocate")
    def bulk_allocate(self, rows: Sequence[Any], trainer_id: str) -> BulkAllocationResult:
        """
        Allocate many classes for one trainer, row by row.

        Each row commits or fails on its own; a failing row is recorded with
        its spreadsheet row number (first data row is 2) and never stops the
        rows after it.

        Raises:
            ValidationException: rows is empty or not a list
            NotFoundException: Unknown trainer
        """
        if not isinstance(rows, list) or not rows:
            raise ValidationException("Invalid allocations data", code="INVALID_ALLOCATIONS")

        trainer = self.user_repository.get_by_id(trainer_id, load_relationships=False)
        if trainer is None:
            raise NotFoundException("Trainer not found")

        self.log_operation("bulk_allocate", trainer_id=trainer_id, row_count=len(rows))
        result = BulkAllocationResult()

        for index, raw in enumerate(rows):
            row_number = index + BULK_FIRST_DATA_ROW
            try:
                booked, scheduled_date, scheduled_time = self._book_bulk_row(raw, trainer_id)
            except DomainException as exc:
                result.failed.append({"row": row_number, "data": raw, "error": exc.message})
                prometheus_metrics.inc_class_allocation("bulk", exc.code)
                continue
            except Exception as exc:
                # A broken row must not abort the remaining rows
                logger.exception(f"Bulk allocation row {row_number} failed unexpectedly")
                result.failed.append({"row": row_number, "data": raw, "error": str(exc)})
                prometheus_metrics.inc_class_allocation("bulk", type(exc).__name__)
                continue

            prometheus_metrics.inc_class_allocation("bulk", "success")
            self._attach_meeting(booked, scheduled_date, scheduled_time)
            result.successful.append(
                {
                    "row": row_number,
                    "studentId": booked.student.id,
                    "classTitle": booked.class_content.title,
                    "scheduledDate": scheduled_date.isoformat(),
                    "scheduleId": booked.schedule.id,
                }
            )

        logger.info(
            f"Bulk allocation for trainer {trainer_id}: "
            f"{result.success_count} successful, {result.failure_count} failed"
        )
        return result

    # Internals

    def _book_bulk_row(self, raw: Any, trainer_id: str) -> tuple[_BookedClass, date, time]:
        if not isinstance(raw, Mapping) or any(not raw.get(key) for key in BULK_REQUIRED_FIELDS):
            raise ValidationException("Missing required fields", code="MISSING_FIELDS")

        scheduled_date = parse_schedule_date(raw["scheduledDate"])
        scheduled_time = parse_schedule_time(raw["scheduledTime"])
        notes = raw.get("notes") or ""
        meta = ClassMeta(
            title=str(raw["classTitle"]),
            description=notes,
            duration=_parse_duration(raw.get("duration")),
            notes=notes,
        )
        booked = self._book_with_retries(
            trainer_id,
            str(raw["studentId"]),
            str(raw["courseId"]),
            scheduled_date,
            scheduled_time,
            meta,
            check_conflicts=settings.enforce_conflicts_on_bulk,
        )
        return booked, scheduled_date, scheduled_time

    def _book_with_retries(
        self,
        trainer_id: str,
        student_id: str,
        course_id: str,
        scheduled_date: date,
        scheduled_time: time,
        meta: ClassMeta,
        *,
        check_conflicts: bool,
    ) -> _BookedClass:
        """Run one booking transaction, retrying on deadlock or serialization failure."""
        details = {
            "trainer_id": trainer_id,
            "student_id": student_id,
            "scheduled_date": scheduled_date.isoformat(),
            "scheduled_time": scheduled_time.isoformat(),
        }
        max_attempts = settings.allocation_max_attempts
        attempt = 1
        while True:
            try:
                with self.schedule_repository.transaction():
                    return self._book_locked(
                        trainer_id,
                        student_id,
                        course_id,
                        scheduled_date,
                        scheduled_time,
                        meta,
                        check_conflicts=check_conflicts,
                    )
            except IntegrityError as exc:
                raise BookingConflictException(details=details) from exc
            except (OperationalError, RepositoryException) as exc:
                if not _is_lock_contention(exc):
                    raise
                if attempt >= max_attempts:
                    logger.warning(
                        f"Allocation gave up after {attempt} attempts on lock contention",
                        extra=details,
                    )
                    raise BookingConflictException(details=details) from exc
            prometheus_metrics.inc_allocation_retry()
            logger.info(f"Retrying allocation after lock contention (attempt {attempt})")
            attempt += 1

    def _book_locked(
        self,
        trainer_id: str,
        student_id: str,
        course_id: str,
        scheduled_date: date,
        scheduled_time: time,
        meta: ClassMeta,
        *,
        check_conflicts: bool,
    ) -> _BookedClass:
        users = {
            user.id: user for user in self.user_repository.lock_for_update([trainer_id, student_id])
        }
        trainer = users.get(trainer_id)
        if trainer is None:
            raise NotFoundException("Trainer not found")
        student = users.get(student_id)
        if student is None:
            raise NotFoundException("Student not found")
        course = self.course_repository.get_by_id(course_id, load_relationships=False)
        if course is None:
            raise NotFoundException("Course not found")

        enrollment = self.enrollment_repository.find_for_triple(student_id, course_id, trainer_id)
        if enrollment is None:
            raise ForbiddenException("Student is not enrolled", code="NOT_ENROLLED")

        if check_conflicts:
            conflicts = self.conflict_checker.find_conflicts(
                scheduled_date, scheduled_time, trainer_id, student_id
            )
            if conflicts:
                raise BookingConflictException(details={"conflicts": conflicts})

        scheduled_count = self.capacity_gate.ensure_capacity(student_id, course)
        order = scheduled_count + 1

        content = self.materializer.resolve_content(course, order, meta.content_overrides())
        schedule = self.schedule_repository.create(
            trainer_id=trainer_id,
            student_id=student_id,
            class_content_id=content.id,
            course_id=course_id,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            status=ScheduleStatus.SCHEDULED.value,
            notes=meta.notes,
        )
        enrollment.advance_to(EnrollmentStatus.ACTIVE)

        logger.info(
            f"Allocated class {order}/{course.total_classes} of course {course_id} "
            f"to student {student_id} with trainer {trainer_id}",
            extra={"schedule_id": schedule.id},
        )
        return _BookedClass(schedule, content, order, trainer, student)

    def _attach_meeting(
        self, booked: _BookedClass, scheduled_date: date, scheduled_time: time
    ) -> MeetingDetails:
        """Provision a meeting for a committed booking and store its link."""
        meeting = self._provision_meeting(booked, scheduled_date, scheduled_time)
        if not meeting.provisioned:
            return meeting

        try:
            with self.schedule_repository.transaction():
                self.schedule_repository.update(
                    booked.schedule.id,
                    meet_link=meeting.meet_link,
                    meeting_event_id=meeting.event_id,
                )
        except (SQLAlchemyError, RepositoryException):
            logger.exception(
                f"Could not store meeting link for schedule {booked.schedule.id}; "
                "booking kept without it"
            )
            return MeetingDetails()
        return meeting

    def _provision_meeting(
        self, booked: _BookedClass, scheduled_date: date, scheduled_time: time
    ) -> MeetingDetails:
        try:
            meeting = self.meeting_client.create_meeting(
                booked.trainer,
                booked.student,
                booked.class_content,
                scheduled_date,
                scheduled_time,
            )
        except ExternalServiceDegradedException as exc:
            prometheus_metrics.inc_meeting_provisioning("error")
            logger.warning(
                f"Meeting provisioning failed for schedule {booked.schedule.id}: {exc.message}",
                extra={"schedule_id": booked.schedule.id, "service": exc.service},
            )
            return MeetingDetails()
        except Exception as exc:
            prometheus_metrics.inc_meeting_provisioning("error")
            logger.warning(
                f"Meeting provisioning failed for schedule {booked.schedule.id}: {exc}",
                extra={"schedule_id": booked.schedule.id},
            )
            return MeetingDetails()

        prometheus_metrics.inc_meeting_provisioning("success" if meeting.provisioned else "skipped")
        return meeting
