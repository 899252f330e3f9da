# backend/coursebook/services/course_service.py
"""
Course Service for the Coursebook platform

Course catalogue management, student enrollment and the progress views
built on top of enrollments and schedules.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import EnrollmentStatus, ScheduleStatus
from ..core.exceptions import NotFoundException, RepositoryException, ValidationException
from ..models.class_schedule import ClassSchedule
from ..models.course import ClassContent, Course, CoursePriceOption
from ..models.enrollment import Enrollment
from ..repositories import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

COURSE_UPDATABLE_FIELDS = ("title", "description", "thumbnail", "total_classes", "rating", "trainer_id")
PRICE_OPTION_FIELDS = ("label", "price", "currency", "class_count")
DEFAULT_CURRENCY = "INR"


def _progress_counts(schedules: Iterable[ClassSchedule], total_classes: int) -> Dict[str, int]:
    scheduled = 0
    completed = 0
    for schedule in schedules:
        if schedule.is_active:
            scheduled += 1
        if schedule.status == ScheduleStatus.COMPLETED:
            completed += 1
    return {
        "totalClasses": total_classes,
        "scheduledCount": scheduled,
        "completedCount": completed,
        "remainingClasses": max(0, total_classes - scheduled),
    }


def _content_dict(content: ClassContent) -> Dict[str, Any]:
    return {
        "id": content.id,
        "order": content.order,
        "title": content.title,
        "description": content.description,
        "content": content.content,
        "duration": content.duration,
        "thumbnail": content.thumbnail,
        "isDynamic": content.is_dynamic,
    }


def _course_summary(course: Course) -> Dict[str, Any]:
    return {
        "id": course.id,
        "title": course.title,
        "thumbnail": course.thumbnail,
        "totalClasses": course.total_classes,
    }


def _normalize_price_options(options: Any) -> List[Dict[str, Any]]:
    """Validate price options, raising ValidationException on the first bad one."""
    if not isinstance(options, (list, tuple)):
        raise ValidationException("Price options must be a list")

    normalized = []
    for option in options:
        if not isinstance(option, Mapping):
            raise ValidationException("Each price option must be an object")
        unknown = set(option) - set(PRICE_OPTION_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown price option fields: {', '.join(sorted(unknown))}")

        label = str(option.get("label") or "").strip()
        if not label:
            raise ValidationException("Price option label is required")
        try:
            price = Decimal(str(option.get("price")))
        except InvalidOperation as exc:
            raise ValidationException(f"Invalid price for option {label!r}") from exc
        if not price.is_finite() or price < 0:
            raise ValidationException(f"Invalid price for option {label!r}")

        class_count = option.get("class_count")
        if class_count is not None and (not isinstance(class_count, int) or class_count <= 0):
            raise ValidationException(f"classCount must be greater than 0 for option {label!r}")

        currency = str(option.get("currency") or DEFAULT_CURRENCY).strip().upper()
        if len(currency) != 3:
            raise ValidationException(f"Invalid currency for option {label!r}")

        normalized.append(
            {
                "label": label,
                "price": price.quantize(Decimal("0.01")),
                "currency": currency,
                "class_count": class_count,
            }
        )
    return normalized


class CourseService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_course_repository(db)
        self.content_repository = RepositoryFactory.create_class_content_repository(db)
        self.enrollment_repository = RepositoryFactory.create_enrollment_repository(db)
        self.schedule_repository = RepositoryFactory.create_class_schedule_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.price_option_repository = RepositoryFactory.create_course_price_option_repository(db)

    # Catalogue

    def list_courses(self) -> List[Course]:
        return self.repository.list_all()

    def list_course_options(self) -> List[CoursePriceOption]:
        return self.price_option_repository.list_all()

    def get_course(self, course_id: str) -> Tuple[Course, List[ClassContent]]:
        """Course with its price options, plus its class contents in order."""
        course = self.repository.get_by_id(course_id)
        if course is None:
            raise NotFoundException("Course not found")
        return course, self.content_repository.list_for_courses([course_id])

    @BaseService.measure_operation("create_course")
    def create_course(
        self,
        title: Optional[str],
        total_classes: Optional[int],
        description: Optional[str] = None,
        rating: Optional[float] = None,
        trainer_id: Optional[str] = None,
        thumbnail: Optional[str] = None,
        options: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> Course:
        """
        Create a course together with its price options.

        Raises:
            ValidationException: Missing title or total_classes, total_classes
                not positive, rating outside 0..5, unknown trainer, or a
                malformed price option
        """
        if not title or not total_classes:
            raise ValidationException("Title and totalClasses are required")
        rating_value = self._validate_rating(rating)
        self._validate_total_classes(total_classes)
        if trainer_id and not self._trainer_exists(trainer_id):
            raise ValidationException("Invalid trainer ID")
        price_options = _normalize_price_options(options or [])

        with self.transaction():
            course = self.repository.create(
                title=title,
                description=description,
                thumbnail=thumbnail,
                duration=0,
                total_classes=total_classes,
                rating=rating_value,
                trainer_id=trainer_id,
            )
            self.repository.replace_price_options(course, price_options)

        self.log_operation("create_course", course_id=course.id, total_classes=total_classes)
        return course

    @BaseService.measure_operation("update_course")
    def update_course(
        self,
        course_id: str,
        options: Optional[Sequence[Mapping[str, Any]]] = None,
        **fields: Any,
    ) -> Course:
        """
        Update provided course fields.

        ``total_classes`` only changes through this call; lowering it below
        what a student already holds does not cancel anything. When
        ``options`` is given it replaces the price options as a whole and an
        empty list removes them all.
        """
        course = self.repository.get_by_id(course_id, load_relationships=False)
        if course is None:
            raise NotFoundException("Course not found")

        unknown = set(fields) - set(COURSE_UPDATABLE_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown course fields: {', '.join(sorted(unknown))}")

        changes = {key: value for key, value in fields.items() if value is not None}
        if "title" in changes and not changes["title"]:
            raise ValidationException("Title is required")
        if "total_classes" in changes:
            self._validate_total_classes(changes["total_classes"])
        if "rating" in changes:
            changes["rating"] = self._validate_rating(changes["rating"])
        if changes.get("trainer_id") and not self._trainer_exists(changes["trainer_id"]):
            raise ValidationException("Invalid trainer ID")
        price_options = None if options is None else _normalize_price_options(options)

        with self.transaction():
            course = self.repository.update(course_id, **changes) or course
            if price_options is not None:
                self.repository.replace_price_options(course, price_options)

        self.log_operation(
            "update_course",
            course_id=course_id,
            fields=sorted(changes),
            price_options_replaced=price_options is not None,
        )
        return course

    @BaseService.measure_operation("delete_course")
    def delete_course(self, course_id: str) -> None:
        with self.transaction():
            if not self.repository.delete_with_dependents(course_id):
                raise NotFoundException("Course not found")
        self.log_operation("delete_course", course_id=course_id)

    # Enrollment

    @BaseService.measure_operation("enroll_student")
    def enroll_student(
        self, course_id: str, student_id: str, trainer_id: str, student_name: str
    ) -> Enrollment:
        """
        Enroll a student in a course with a trainer.

        Raises:
            ValidationException: Missing inputs, or the triple is already enrolled
            NotFoundException: Unknown course, trainer or student
        """
        if not student_name or not student_id or not trainer_id:
            raise ValidationException("Student name, Student ID, and Trainer ID required")

        if self.repository.get_by_id(course_id, load_relationships=False) is None:
            raise NotFoundException("Course not found")
        if not self._trainer_exists(trainer_id):
            raise NotFoundException("Trainer not found")
        if self.user_repository.get_by_id(student_id, load_relationships=False) is None:
            raise NotFoundException("Student not found")

        if self.enrollment_repository.find_for_triple(student_id, course_id, trainer_id):
            raise ValidationException("Already enrolled", code="ALREADY_ENROLLED")

        try:
            with self.enrollment_repository.transaction():
                enrollment = self.enrollment_repository.create(
                    student_name=student_name.strip(),
                    student_id=student_id,
                    course_id=course_id,
                    trainer_id=trainer_id,
                    status=EnrollmentStatus.TRAINER_ASSIGNED.value,
                )
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise ValidationException("Already enrolled", code="ALREADY_ENROLLED") from exc
            raise

        self.log_operation(
            "enroll_student", enrollment_id=enrollment.id, course_id=course_id, trainer_id=trainer_id
        )
        return enrollment

    # Progress views

    @BaseService.measure_operation("get_enrolled_course_progress")
    def get_enrolled_course_progress(
        self, student_id: str, trainer_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Per-enrollment course progress for a student, with each class's schedule state.

        When ``trainer_id`` is given only that trainer's enrollments and
        schedules are considered.

        Raises:
            NotFoundException: The student has no matching enrollments
        """
        enrollments = self.enrollment_repository.list_for_student(student_id, trainer_id=trainer_id)
        if not enrollments:
            raise NotFoundException("No enrollments found")

        course_ids = [enrollment.course_id for enrollment in enrollments]
        contents = self.content_repository.list_for_courses(course_ids)
        schedules = self.schedule_repository.list_for_student_courses(
            student_id, course_ids, trainer_id=trainer_id
        )
        status_by_content = {s.class_content_id: s.status for s in schedules}

        courses = []
        for enrollment in enrollments:
            course = enrollment.course
            course_schedules = [s for s in schedules if s.course_id == course.id]
            enrolled_at = enrollment.enrollment_date or enrollment.created_at or datetime.now(timezone.utc)
            classes = []
            for content in contents:
                if content.course_id != course.id:
                    continue
                schedule_status = status_by_content.get(content.id)
                classes.append(
                    {
                        **_content_dict(content),
                        "isScheduled": schedule_status is not None,
                        "isCompleted": schedule_status == ScheduleStatus.COMPLETED,
                        "scheduleStatus": schedule_status or "pending",
                    }
                )
            courses.append(
                {
                    **_course_summary(course),
                    **_progress_counts(course_schedules, course.total_classes),
                    "enrollmentId": enrollment.id,
                    "enrollmentStatus": enrollment.status,
                    "enrollmentCompletedAt": enrollment.completed_at,
                    "expiryDate": enrolled_at + timedelta(days=settings.enrollment_expiry_days),
                    "classes": classes,
                }
            )
        return courses

    def list_active_courses_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        """Courses a student is enrolled in with their entitlement counts."""
        enrollments = self.enrollment_repository.list_for_student(student_id)
        course_ids = [enrollment.course_id for enrollment in enrollments]
        schedules = self.schedule_repository.list_for_student_courses(student_id, course_ids)

        courses = []
        for enrollment in enrollments:
            course = enrollment.course
            courses.append(
                {
                    **_course_summary(course),
                    "description": course.description,
                    "rating": course.rating,
                    **_progress_counts(
                        (s for s in schedules if s.course_id == course.id), course.total_classes
                    ),
                    "trainerId": enrollment.trainer_id,
                    "enrollmentStatus": enrollment.status,
                    "enrollmentCompletedAt": enrollment.completed_at,
                }
            )
        return courses

    def list_trainers_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        """Distinct trainers across a student's enrollments, ordered by name."""
        enrollments = self.enrollment_repository.list_for_student(student_id)
        trainers = self.user_repository.get_many(
            enrollment.trainer_id for enrollment in enrollments
        )
        return [{**trainer.to_summary(), "specialist": trainer.specialist} for trainer in trainers]

    def list_students_for_trainer(self, trainer_id: str) -> List[Dict[str, Any]]:
        """
        A trainer's students, each with the courses they take with this trainer.
        """
        enrollments = self.enrollment_repository.list_for_trainer(trainer_id)
        contents_by_course: Dict[str, List[ClassContent]] = {}
        for content in self.content_repository.list_for_courses(
            {enrollment.course_id for enrollment in enrollments}
        ):
            contents_by_course.setdefault(content.course_id, []).append(content)

        students: Dict[str, Dict[str, Any]] = {}
        for enrollment in enrollments:
            student = enrollment.student
            course = enrollment.course
            schedules = self.schedule_repository.list_for_student_courses(student.id, [course.id])
            status_by_content = {s.class_content_id: s.status for s in schedules}

            course_entry = {
                **_course_summary(course),
                **_progress_counts(schedules, course.total_classes),
                "classes": [
                    {
                        **_content_dict(content),
                        "scheduleStatus": status_by_content.get(content.id, "pending"),
                    }
                    for content in contents_by_course.get(course.id, [])
                ],
                "enrollmentDetails": {
                    "id": enrollment.id,
                    "studentName": student.name,
                    "studentEmail": student.email,
                    "studentId": student.id,
                    "courseId": course.id,
                    "status": enrollment.status,
                    "completedAt": enrollment.completed_at,
                },
            }
            entry = students.setdefault(
                student.id, {**student.to_summary(), "specialist": student.specialist, "courses": []}
            )
            entry["courses"].append(course_entry)

        return list(students.values())

    # Validation helpers

    @staticmethod
    def _validate_total_classes(total_classes: Any) -> None:
        if not isinstance(total_classes, int) or total_classes <= 0:
            raise ValidationException("totalClasses must be greater than 0")

    @staticmethod
    def _validate_rating(rating: Optional[float]) -> float:
        rating_value = float(rating or 0)
        if rating_value < 0 or rating_value > 5:
            raise ValidationException("Rating must be between 0 and 5")
        return rating_value

    def _trainer_exists(self, trainer_id: str) -> bool:
        return self.user_repository.get_by_id(trainer_id, load_relationships=False) is not None
