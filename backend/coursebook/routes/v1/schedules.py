# backend/coursebook/routes/v1/schedules.py
"""
Class allocation and schedule routes - API v1

Mounted under /api/v1/courses alongside the course routes.
All business logic delegated to AllocationService and ScheduleService.

Endpoints:
    POST /allocate-class - Book the next class of a course for a student
    POST /bulk-allocate-classes - Book many classes from spreadsheet rows
    GET /schedules/student - The caller's schedules as a student
    GET /schedules/trainer - The caller's schedules as a trainer
    GET /reports/trainer - Monthly trainer statistics
    GET /schedule/{schedule_id} - Schedule details (participants only)
    PUT /schedule/{schedule_id} - Reschedule, complete, cancel or annotate
    DELETE /schedule/{schedule_id} - Remove a schedule (trainer only)
"""

import asyncio
from datetime import date
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ...api.dependencies import get_allocation_service, get_schedule_service
from ...auth import get_current_user_id
from ...core.exceptions import DomainException
from ...schemas.course import ClassContentResponse, MessageResponse
from ...schemas.schedule import (
    AllocateClassRequest,
    AllocationResponse,
    BulkAllocationRequest,
    BulkAllocationResponse,
    ScheduleDetailResponse,
    ScheduleEnvelope,
    ScheduleListResponse,
    ScheduleResponse,
    ScheduleUpdate,
    TrainerReportResponse,
)
from ...services.allocation_service import AllocationService, ClassMeta
from ...services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["schedules-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.post(
    "/allocate-class",
    response_model=AllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def allocate_class(
    payload: AllocateClassRequest,
    current_user_id: str = Depends(get_current_user_id),
    allocation_service: AllocationService = Depends(get_allocation_service),
) -> AllocationResponse:
    """Book the next class for an enrolled student. The caller is the trainer."""
    meta = ClassMeta(
        title=payload.class_title,
        description=payload.class_description,
        duration=payload.class_duration,
        notes=payload.notes,
    )
    try:
        result = await asyncio.to_thread(
            allocation_service.allocate_class,
            current_user_id,
            payload.student_id,
            payload.course_id,
            payload.scheduled_date,
            payload.scheduled_time,
            meta,
        )
        return AllocationResponse(
            message=result.message,
            schedule=ScheduleResponse.model_validate(result.schedule),
            new_class=ClassContentResponse.model_validate(result.class_content),
            meet_link=result.meeting.meet_link,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bulk-allocate-classes", response_model=BulkAllocationResponse)
async def bulk_allocate_classes(
    payload: BulkAllocationRequest,
    response: Response,
    current_user_id: str = Depends(get_current_user_id),
    allocation_service: AllocationService = Depends(get_allocation_service),
) -> BulkAllocationResponse:
    """
    Allocate classes from spreadsheet rows.

    Answers 200 when at least one row was booked and 400 otherwise; the
    body always lists every row as either successful or failed.
    """
    trainer_id = payload.trainer_id or current_user_id
    try:
        result = await asyncio.to_thread(
            allocation_service.bulk_allocate, payload.allocations, trainer_id
        )
    except DomainException as e:
        handle_domain_exception(e)

    response.status_code = status.HTTP_200_OK if result.succeeded else status.HTTP_400_BAD_REQUEST
    return BulkAllocationResponse.model_validate(result.to_dict())


@router.get("/schedules/student", response_model=ScheduleListResponse)
async def get_student_schedules(
    current_user_id: str = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleListResponse:
    try:
        schedules = await asyncio.to_thread(
            lambda: schedule_service.list_schedules(student_id=current_user_id)
        )
        return ScheduleListResponse(
            schedules=[ScheduleDetailResponse.model_validate(s) for s in schedules]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/schedules/trainer", response_model=ScheduleListResponse)
async def get_trainer_schedules(
    current_user_id: str = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleListResponse:
    try:
        schedules = await asyncio.to_thread(
            lambda: schedule_service.list_schedules(trainer_id=current_user_id)
        )
        return ScheduleListResponse(
            schedules=[ScheduleDetailResponse.model_validate(s) for s in schedules]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/reports/trainer", response_model=TrainerReportResponse)
async def get_trainer_report(
    month: Optional[date] = Query(None, description="Any day within the month to report"),
    current_user_id: str = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> TrainerReportResponse:
    try:
        report = await asyncio.to_thread(
            schedule_service.get_trainer_report, current_user_id, month
        )
        return TrainerReportResponse.model_validate(report)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/schedule/{schedule_id}", response_model=ScheduleEnvelope)
async def get_schedule(
    schedule_id: str,
    current_user_id: str = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleEnvelope:
    try:
        schedule = await asyncio.to_thread(
            schedule_service.get_schedule_for_user, schedule_id, current_user_id
        )
        return ScheduleEnvelope(schedule=ScheduleDetailResponse.model_validate(schedule))
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/schedule/{schedule_id}", response_model=ScheduleEnvelope)
async def update_schedule(
    schedule_id: str,
    payload: ScheduleUpdate,
    current_user_id: str = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleEnvelope:
    """Partial update. Completing a class may complete the enrollment."""
    patch = payload.model_dump(exclude_unset=True)
    try:
        schedule = await asyncio.to_thread(
            schedule_service.update_schedule, schedule_id, patch, current_user_id
        )
        return ScheduleEnvelope(
            schedule=ScheduleDetailResponse.model_validate(schedule),
            message="Schedule updated",
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/schedule/{schedule_id}", response_model=MessageResponse)
async def delete_schedule(
    schedule_id: str,
    current_user_id: str = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> MessageResponse:
    try:
        await asyncio.to_thread(schedule_service.delete_schedule, schedule_id, current_user_id)
        return MessageResponse(message="Schedule deleted")
    except DomainException as e:
        handle_domain_exception(e)
