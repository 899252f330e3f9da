# backend/coursebook/schemas/course.py
"""Course, class content and enrollment schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import Money, StandardizedModel, StrictRequestModel


class CoursePriceOptionInput(StrictRequestModel):
    label: str
    price: Money
    currency: Optional[str] = None
    class_count: Optional[int] = None


class CourseCreate(StrictRequestModel):
    """
    Create a course.

    Business rules (title and a positive total are required, rating in
    0..5) are enforced by the service so they answer 400 with a clear message.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    total_classes: Optional[int] = None
    rating: Optional[float] = None
    trainer_id: Optional[str] = None
    thumbnail: Optional[str] = Field(None, description="Object storage key of the cover image")
    options: Optional[List[CoursePriceOptionInput]] = None


class CourseUpdate(StrictRequestModel):
    title: Optional[str] = None
    description: Optional[str] = None
    total_classes: Optional[int] = None
    rating: Optional[float] = None
    trainer_id: Optional[str] = None
    thumbnail: Optional[str] = None
    options: Optional[List[CoursePriceOptionInput]] = Field(
        None, description="Replaces every price option of the course when present"
    )


class EnrollRequest(StrictRequestModel):
    student_name: Optional[str] = None
    student_id: Optional[str] = None
    trainer_id: Optional[str] = None


class UserSummary(StandardizedModel):
    id: str
    name: str
    email: str
    specialist: Optional[str] = None


class StudentTrainersResponse(StandardizedModel):
    trainers: List[UserSummary]


class CourseSummary(StandardizedModel):
    id: str
    title: str
    thumbnail: Optional[str] = None
    total_classes: int


class ClassContentResponse(StandardizedModel):
    id: str
    course_id: str
    order: int
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    duration: int
    thumbnail: Optional[str] = None
    is_dynamic: bool


class CoursePriceOptionResponse(StandardizedModel):
    id: str
    course_id: str
    label: str
    price: Money
    currency: str
    class_count: Optional[int] = None
    display_order: int = 0


class CourseResponse(StandardizedModel):
    id: str
    title: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: int = 0
    total_classes: int
    rating: float = 0.0
    trainer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    price_options: List[CoursePriceOptionResponse] = Field(default_factory=list)


class CourseDetailResponse(CourseResponse):
    classes: List[ClassContentResponse] = Field(default_factory=list)


class CourseEnvelope(StandardizedModel):
    course: CourseResponse
    message: str


class EnrollmentResponse(StandardizedModel):
    id: str
    student_id: str
    course_id: str
    trainer_id: str
    student_name: Optional[str] = None
    status: str
    completed_at: Optional[datetime] = None
    enrollment_date: Optional[datetime] = None


class EnrollmentEnvelope(StandardizedModel):
    enrollment: EnrollmentResponse
    message: str


class EnrolledCoursesResponse(StandardizedModel):
    """Progress views are assembled by the service as camelCase dicts."""

    courses: List[Dict[str, Any]]
    message: str


class MessageResponse(StandardizedModel):
    message: str
