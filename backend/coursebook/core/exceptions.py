# backend/coursebook/core/exceptions.py
"""
Domain-specific exceptions for the Coursebook platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the structured error body."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details,
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a class time clashes with an existing schedule."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Time slot conflict detected",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class CapacityExceededException(DomainException):
    """Raised when a student's class entitlement for a course is used up."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, scheduled_count: int, total_classes: int):
        super().__init__(
            message=f"Allocation limit reached ({scheduled_count}/{total_classes})",
            code="CAPACITY_EXCEEDED",
            details={
                "scheduled_count": scheduled_count,
                "total_classes": total_classes,
            },
        )
        self.scheduled_count = scheduled_count
        self.total_classes = total_classes


class ExternalServiceDegradedException(ServiceException):
    """
    Raised by integrations when a best-effort external call fails.

    Callers log it; it is never surfaced as the failure of the primary operation.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        service: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="EXTERNAL_SERVICE_DEGRADED",
            details={"service": service, **(details or {})},
        )
        self.service = service


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
