# backend/tests/unit/services/test_schedule_service.py
"""
Schedule lifecycle tests.

scheduled -> completed | cancelled; terminal states never change, only
participants may read or update, only the trainer may delete.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from coursebook.core.enums import EnrollmentStatus, RoleName, ScheduleStatus
from coursebook.core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from coursebook.models import ClassSchedule, Enrollment
from coursebook.services.schedule_service import ScheduleService, month_bounds

CLASS_DAY = date(2026, 3, 2)


@pytest.fixture
def service(db):
    return ScheduleService(db)


@pytest.fixture
def booked(make_schedule, trainer, student, course, enrollment):
    return make_schedule(trainer, student, course, CLASS_DAY, time(10, 0))


class TestMonthBounds:
    @pytest.mark.parametrize(
        "day, expected",
        [
            (date(2026, 2, 14), (date(2026, 2, 1), date(2026, 2, 28))),
            (date(2028, 2, 29), (date(2028, 2, 1), date(2028, 2, 29))),
            (date(2026, 12, 31), (date(2026, 12, 1), date(2026, 12, 31))),
        ],
    )
    def test_bounds(self, day, expected):
        assert month_bounds(day) == expected


class TestReadAccess:
    def test_participants_can_read(self, service, booked, trainer, student):
        for actor in (trainer, student):
            schedule = service.get_schedule_for_user(booked.id, actor.id)
            assert schedule.id == booked.id
            assert schedule.trainer.name == "Tara Trainer"
            assert schedule.class_content.order == 1

    def test_outsider_is_denied(self, service, booked, make_user):
        outsider = make_user(RoleName.STUDENT)

        with pytest.raises(ForbiddenException, match="Access denied"):
            service.get_schedule_for_user(booked.id, outsider.id)

    def test_unknown_schedule(self, service, trainer):
        with pytest.raises(NotFoundException, match="Schedule not found"):
            service.get_schedule_for_user("01HNOSCHEDULE000000000000", trainer.id)


class TestUpdateSchedule:
    def test_student_can_add_notes(self, service, booked, student):
        updated = service.update_schedule(booked.id, {"notes": "Running late"}, student.id)

        assert updated.notes == "Running late"
        assert updated.status == ScheduleStatus.SCHEDULED
        assert updated.student.id == student.id

    def test_explicit_none_clears_notes(self, db, service, booked, trainer):
        booked.notes = "old"
        db.commit()

        updated = service.update_schedule(booked.id, {"notes": None}, trainer.id)

        assert updated.notes is None

    def test_empty_values_keep_current_slot(self, service, booked, trainer):
        updated = service.update_schedule(
            booked.id, {"scheduled_date": None, "scheduled_time": None, "status": None}, trainer.id
        )

        assert updated.scheduled_date == CLASS_DAY
        assert updated.scheduled_time == time(10, 0)
        assert updated.status == ScheduleStatus.SCHEDULED

    def test_outsider_cannot_update(self, service, booked, make_user):
        outsider = make_user(RoleName.TRAINER)

        with pytest.raises(ForbiddenException):
            service.update_schedule(booked.id, {"status": "cancelled"}, outsider.id)

    def test_unknown_schedule(self, service, trainer):
        with pytest.raises(NotFoundException):
            service.update_schedule("01HNOSCHEDULE000000000000", {}, trainer.id)

    def test_unknown_status_is_rejected(self, service, booked, trainer):
        with pytest.raises(ValidationException) as exc_info:
            service.update_schedule(booked.id, {"status": "archived"}, trainer.id)

        assert exc_info.value.code == "INVALID_STATUS"

    @pytest.mark.parametrize("terminal", [ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED])
    def test_terminal_status_cannot_be_left(
        self, db, service, make_schedule, trainer, student, course, enrollment, terminal
    ):
        schedule = make_schedule(trainer, student, course, CLASS_DAY, time(10, 0), status=terminal)

        with pytest.raises(ValidationException) as exc_info:
            service.update_schedule(schedule.id, {"status": "scheduled"}, trainer.id)

        assert exc_info.value.code == "TERMINAL_STATUS"
        assert db.query(ClassSchedule).filter(ClassSchedule.id == schedule.id).one().status == (
            terminal.value
        )

    def test_terminal_schedule_still_takes_notes(
        self, service, make_schedule, trainer, student, course, enrollment
    ):
        schedule = make_schedule(
            trainer, student, course, CLASS_DAY, time(10, 0), status=ScheduleStatus.CANCELLED
        )

        updated = service.update_schedule(
            schedule.id, {"status": "cancelled", "notes": "Student ill"}, trainer.id
        )

        assert updated.notes == "Student ill"
        assert updated.status == ScheduleStatus.CANCELLED

    def test_cancel(self, service, booked, student):
        updated = service.update_schedule(booked.id, {"status": ScheduleStatus.CANCELLED}, student.id)

        assert updated.status == ScheduleStatus.CANCELLED


class TestReschedule:
    def test_move_within_own_window_is_allowed(self, service, booked, trainer):
        updated = service.update_schedule(booked.id, {"scheduled_time": time(10, 15)}, trainer.id)

        assert updated.scheduled_time == time(10, 15)

    def test_move_onto_another_class_conflicts(
        self, db, service, make_user, make_enrollment, make_schedule, booked, trainer, course
    ):
        other_student = make_user(RoleName.STUDENT)
        make_enrollment(other_student, course, trainer)
        later = make_schedule(trainer, other_student, course, CLASS_DAY, time(14, 0))

        with pytest.raises(BookingConflictException) as exc_info:
            service.update_schedule(later.id, {"scheduled_time": time(10, 30)}, trainer.id)

        assert exc_info.value.details["conflicts"][0]["schedule_id"] == booked.id
        stored = db.query(ClassSchedule).filter(ClassSchedule.id == later.id).one()
        assert stored.scheduled_time == time(14, 0)

    def test_move_to_another_day(self, service, booked, student):
        updated = service.update_schedule(
            booked.id, {"scheduled_date": date(2026, 3, 9)}, student.id
        )

        assert updated.scheduled_date == date(2026, 3, 9)
        assert updated.scheduled_time == time(10, 0)

    def test_completed_class_cannot_move_onto_another_class(
        self, db, service, make_schedule, booked, trainer, student, course
    ):
        later = make_schedule(
            trainer, student, course, CLASS_DAY, time(14, 0), status=ScheduleStatus.COMPLETED
        )

        with pytest.raises(BookingConflictException) as exc_info:
            service.update_schedule(later.id, {"scheduled_time": time(10, 30)}, trainer.id)

        assert exc_info.value.details["conflicts"][0]["schedule_id"] == booked.id
        stored = db.query(ClassSchedule).filter(ClassSchedule.id == later.id).one()
        assert stored.scheduled_time == time(14, 0)

    def test_completing_while_moving_checks_the_new_slot(
        self, service, make_user, make_enrollment, make_schedule, booked, trainer, course
    ):
        other_student = make_user(RoleName.STUDENT)
        make_enrollment(other_student, course, trainer)
        later = make_schedule(trainer, other_student, course, CLASS_DAY, time(14, 0))

        with pytest.raises(BookingConflictException):
            service.update_schedule(
                later.id, {"scheduled_time": time(10, 0), "status": "completed"}, trainer.id
            )

    def test_cancelling_while_moving_skips_conflict_check(
        self, service, make_user, make_enrollment, make_schedule, booked, trainer, course
    ):
        other_student = make_user(RoleName.STUDENT)
        make_enrollment(other_student, course, trainer)
        later = make_schedule(trainer, other_student, course, CLASS_DAY, time(14, 0))

        updated = service.update_schedule(
            later.id, {"scheduled_time": time(10, 0), "status": "cancelled"}, trainer.id
        )

        assert updated.status == ScheduleStatus.CANCELLED


class TestCompletionDrivesEnrollment:
    def test_completing_last_class_completes_enrollment(
        self, db, service, make_course, make_enrollment, make_schedule, trainer, student
    ):
        two_classes = make_course(total_classes=2)
        enrollment = make_enrollment(student, two_classes, trainer, EnrollmentStatus.ACTIVE)
        first = make_schedule(trainer, student, two_classes, CLASS_DAY, time(10, 0))
        second = make_schedule(trainer, student, two_classes, date(2026, 3, 3), time(10, 0))

        service.update_schedule(first.id, {"status": "completed"}, trainer.id)
        assert db.query(Enrollment).filter(Enrollment.id == enrollment.id).one().status == (
            EnrollmentStatus.ACTIVE
        )

        service.update_schedule(second.id, {"status": "completed"}, trainer.id)
        refreshed = db.query(Enrollment).filter(Enrollment.id == enrollment.id).one()
        assert refreshed.status == EnrollmentStatus.COMPLETED
        assert refreshed.completed_at is not None


class TestDeleteSchedule:
    def test_trainer_deletes(self, db, service, booked, trainer):
        service.delete_schedule(booked.id, trainer.id)

        assert db.query(ClassSchedule).count() == 0

    def test_student_cannot_delete(self, db, service, booked, student):
        with pytest.raises(ForbiddenException, match="Only trainer can delete"):
            service.delete_schedule(booked.id, student.id)

        assert db.query(ClassSchedule).count() == 1

    def test_unknown_schedule(self, service, trainer):
        with pytest.raises(NotFoundException):
            service.delete_schedule("01HNOSCHEDULE000000000000", trainer.id)

    def test_completed_enrollment_survives_delete(
        self, db, service, make_course, make_enrollment, make_schedule, trainer, student
    ):
        one_class = make_course(total_classes=1)
        enrollment = make_enrollment(student, one_class, trainer, EnrollmentStatus.COMPLETED)
        schedule = make_schedule(
            trainer, student, one_class, CLASS_DAY, time(10, 0), status=ScheduleStatus.COMPLETED
        )

        service.delete_schedule(schedule.id, trainer.id)

        refreshed = db.query(Enrollment).filter(Enrollment.id == enrollment.id).one()
        assert refreshed.status == EnrollmentStatus.COMPLETED


class TestListSchedules:
    def test_student_schedules_in_date_time_order(
        self, service, make_schedule, trainer, student, course, enrollment
    ):
        late = make_schedule(trainer, student, course, date(2026, 3, 3), time(9, 0))
        early = make_schedule(trainer, student, course, CLASS_DAY, time(15, 0))
        earliest = make_schedule(trainer, student, course, CLASS_DAY, time(8, 0))

        schedules = service.list_schedules(student_id=student.id)

        assert [s.id for s in schedules] == [earliest.id, early.id, late.id]
        assert schedules[0].course.title == "Python Basics"

    def test_trainer_schedules(self, service, booked, trainer, student):
        assert [s.id for s in service.list_schedules(trainer_id=trainer.id)] == [booked.id]
        assert service.list_schedules(trainer_id=student.id) == []

    def test_exactly_one_party_required(self, service, trainer, student):
        with pytest.raises(ValidationException):
            service.list_schedules()
        with pytest.raises(ValidationException):
            service.list_schedules(student_id=student.id, trainer_id=trainer.id)


class TestTrainerReport:
    def test_monthly_statistics(
        self, service, make_schedule, make_user, make_enrollment, trainer, student, course, enrollment
    ):
        today = datetime.now(timezone.utc).date()
        first_day = today.replace(day=1)
        second_student = make_user(RoleName.STUDENT, name="Second Student")
        make_enrollment(second_student, course, trainer)

        make_schedule(
            trainer, student, course, first_day, time(9, 0), status=ScheduleStatus.COMPLETED
        )
        make_schedule(
            trainer,
            second_student,
            course,
            first_day + timedelta(days=1),
            time(9, 0),
            status=ScheduleStatus.COMPLETED,
        )
        make_schedule(
            trainer,
            student,
            course,
            first_day + timedelta(days=2),
            time(9, 0),
            status=ScheduleStatus.CANCELLED,
        )
        make_schedule(trainer, student, course, first_day + timedelta(days=3), time(9, 0))
        make_schedule(
            trainer,
            student,
            course,
            first_day - timedelta(days=1),
            time(9, 0),
            status=ScheduleStatus.COMPLETED,
        )

        report = service.get_trainer_report(trainer.id, today)

        assert report["trainerId"] == trainer.id
        assert report["month"] == first_day.strftime("%B %Y")
        assert report["stats"] == {
            "totalCompleted": 2,
            "totalCancelled": 1,
            "totalStudentsHandled": 2,
        }
        recent = report["recentClasses"]
        assert [entry["date"] for entry in recent] == [
            (first_day + timedelta(days=1)).isoformat(),
            first_day.isoformat(),
        ]
        assert recent[0]["student"] == "Second Student"
        assert recent[0]["course"] == "Python Basics"
        assert recent[0]["status"] == "completed"

    def test_recent_classes_capped_at_five(self, service, make_schedule, make_course, trainer, student):
        today = datetime.now(timezone.utc).date()
        big_course = make_course(total_classes=10)
        for hour in range(8, 15):
            make_schedule(
                trainer,
                student,
                big_course,
                today.replace(day=1),
                time(hour, 0),
                status=ScheduleStatus.COMPLETED,
            )

        report = service.get_trainer_report(trainer.id, today)

        assert report["stats"]["totalCompleted"] == 7
        assert len(report["recentClasses"]) == 5
        assert report["recentClasses"][0]["time"] == "14:00:00"

    def test_empty_month(self, service, trainer):
        report = service.get_trainer_report(trainer.id, date(2020, 1, 15))

        assert report["month"] == "January 2020"
        assert report["stats"]["totalCompleted"] == 0
        assert report["recentClasses"] == []
