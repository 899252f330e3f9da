# backend/coursebook/services/__init__.py
"""
Service layer for the Coursebook platform.

Services hold the business rules and own transactions; repositories own
queries.
"""

from .allocation_service import AllocationService, BulkAllocationResult, ClassMeta
from .base import BaseService
from .capacity_gate import CapacityGate
from .conflict_checker import ConflictChecker
from .course_service import CourseService
from .enrollment_progress_service import EnrollmentProgressService
from .schedule_service import ScheduleService
from .session_materializer import SessionMaterializer

__all__ = [
    "BaseService",
    "ConflictChecker",
    "CapacityGate",
    "SessionMaterializer",
    "AllocationService",
    "BulkAllocationResult",
    "ClassMeta",
    "EnrollmentProgressService",
    "ScheduleService",
    "CourseService",
]
