# backend/coursebook/routes/v1/courses.py
"""
Course catalogue, enrollment and progress routes - API v1

Versioned endpoints under /api/v1/courses.
All business logic delegated to CourseService.

Endpoints:
    GET / - List courses
    POST / - Create a course
    GET /courseoptions - Every course price option
    GET /student/active - The caller's enrolled courses with counts
    GET /student/trainers - Trainers the caller is enrolled with
    GET /trainer/students - The caller's students grouped with their courses
    GET /enrolled-classes - The caller's per-class progress as a student
    GET /enrolled-classes/{student_id} - A student's progress with the calling trainer
    GET /{course_id} - Course details with class contents
    PUT /{course_id} - Update a course
    DELETE /{course_id} - Delete a course and everything booked under it
    POST /{course_id}/enroll - Enroll a student with a trainer
"""

import asyncio
import logging
from typing import Any, Dict, List, NoReturn

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_course_service
from ...auth import get_current_user_id
from ...core.exceptions import DomainException
from ...schemas.course import (
    ClassContentResponse,
    CourseCreate,
    CourseDetailResponse,
    CourseEnvelope,
    CoursePriceOptionResponse,
    CourseResponse,
    CourseUpdate,
    EnrolledCoursesResponse,
    EnrollmentEnvelope,
    EnrollmentResponse,
    EnrollRequest,
    MessageResponse,
    StudentTrainersResponse,
    UserSummary,
)
from ...services.course_service import CourseService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["courses-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.get("", response_model=List[CourseResponse])
async def list_courses(
    course_service: CourseService = Depends(get_course_service),
) -> List[CourseResponse]:
    courses = await asyncio.to_thread(course_service.list_courses)
    return [CourseResponse.model_validate(course) for course in courses]


@router.post("", response_model=CourseEnvelope, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> CourseEnvelope:
    try:
        course = await asyncio.to_thread(
            lambda: course_service.create_course(
                title=payload.title,
                total_classes=payload.total_classes,
                description=payload.description,
                rating=payload.rating,
                trainer_id=payload.trainer_id,
                thumbnail=payload.thumbnail,
                options=(
                    None
                    if payload.options is None
                    else [option.model_dump(exclude_unset=True) for option in payload.options]
                ),
            )
        )
        return CourseEnvelope(
            course=CourseResponse.model_validate(course), message="Course created successfully"
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/courseoptions", response_model=List[CoursePriceOptionResponse])
async def list_course_options(
    course_service: CourseService = Depends(get_course_service),
) -> List[CoursePriceOptionResponse]:
    options = await asyncio.to_thread(course_service.list_course_options)
    return [CoursePriceOptionResponse.model_validate(option) for option in options]


@router.get("/student/active")
async def get_active_courses(
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> List[Dict[str, Any]]:
    try:
        return await asyncio.to_thread(
            course_service.list_active_courses_for_student, current_user_id
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/student/trainers", response_model=StudentTrainersResponse)
async def get_student_trainers(
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> StudentTrainersResponse:
    try:
        trainers = await asyncio.to_thread(
            course_service.list_trainers_for_student, current_user_id
        )
        return StudentTrainersResponse(
            trainers=[UserSummary.model_validate(trainer) for trainer in trainers]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/trainer/students")
async def get_trainer_students(
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> Dict[str, Any]:
    try:
        students = await asyncio.to_thread(
            course_service.list_students_for_trainer, current_user_id
        )
        return {"students": students}
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/enrolled-classes", response_model=EnrolledCoursesResponse)
async def get_my_enrolled_classes(
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> EnrolledCoursesResponse:
    try:
        courses = await asyncio.to_thread(
            course_service.get_enrolled_course_progress, current_user_id
        )
        return EnrolledCoursesResponse(
            courses=courses, message="Enrolled courses retrieved successfully"
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/enrolled-classes/{student_id}", response_model=EnrolledCoursesResponse)
async def get_student_enrolled_classes(
    student_id: str,
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> EnrolledCoursesResponse:
    """Progress of one student, limited to enrollments with the calling trainer."""
    try:
        courses = await asyncio.to_thread(
            course_service.get_enrolled_course_progress, student_id, current_user_id
        )
        return EnrolledCoursesResponse(
            courses=courses, message="Enrolled courses retrieved successfully"
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{course_id}", response_model=CourseDetailResponse)
async def get_course(
    course_id: str,
    course_service: CourseService = Depends(get_course_service),
) -> CourseDetailResponse:
    try:
        course, contents = await asyncio.to_thread(course_service.get_course, course_id)
        detail = CourseDetailResponse.model_validate(course)
        detail.classes = [ClassContentResponse.model_validate(c) for c in contents]
        return detail
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{course_id}", response_model=CourseEnvelope)
async def update_course(
    course_id: str,
    payload: CourseUpdate,
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> CourseEnvelope:
    changes = payload.model_dump(exclude_unset=True)
    try:
        course = await asyncio.to_thread(lambda: course_service.update_course(course_id, **changes))
        return CourseEnvelope(
            course=CourseResponse.model_validate(course), message="Course updated successfully"
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{course_id}", response_model=MessageResponse)
async def delete_course(
    course_id: str,
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> MessageResponse:
    try:
        await asyncio.to_thread(course_service.delete_course, course_id)
        return MessageResponse(message="Course deleted successfully")
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    course_id: str,
    payload: EnrollRequest,
    current_user_id: str = Depends(get_current_user_id),
    course_service: CourseService = Depends(get_course_service),
) -> EnrollmentEnvelope:
    try:
        enrollment = await asyncio.to_thread(
            course_service.enroll_student,
            course_id,
            payload.student_id,
            payload.trainer_id,
            payload.student_name,
        )
        return EnrollmentEnvelope(
            enrollment=EnrollmentResponse.model_validate(enrollment),
            message="Student enrolled successfully",
        )
    except DomainException as e:
        handle_domain_exception(e)
