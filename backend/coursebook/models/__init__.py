"""
Database models for the Coursebook platform.

- User: trainers, students and admins
- Course / ClassContent: courses and their ordinal lessons
- CoursePriceOption: purchasable packages of a course
- Enrollment: the (student, course, trainer) entitlement grant
- ClassSchedule: a booked class
"""

from .class_schedule import ClassSchedule
from .course import ClassContent, Course, CoursePriceOption
from .enrollment import Enrollment
from .user import User

__all__ = [
    "User",
    "Course",
    "CoursePriceOption",
    "ClassContent",
    "Enrollment",
    "ClassSchedule",
]
