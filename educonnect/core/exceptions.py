# educonnect/core/exceptions.py
"""
Domain-specific exceptions for the EduConnect booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every failure kind carries a stable ``code`` and a message that tells
the caller what to do next.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


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

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when input is malformed; always raised before any store access."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message or "An error occurred processing your request",
            "code": self.code,
            "details": self.details if self.details else {},
        }


class StoreUnavailableException(ServiceException):
    """Raised when the backing store is temporarily unreachable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "Service temporarily unavailable. Please retry.",
            code="STORE_UNAVAILABLE",
            details=details or {},
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_dict(),
            headers={"Retry-After": "2"},
        )


# Specific business exceptions


class InvalidTimeRangeException(ValidationException):
    """Raised when a time range is malformed (naive, or start >= end)."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_TIME_RANGE", details=details or {})


class SlotNotFoundException(NotFoundException):
    def __init__(self, slot_id: str):
        super().__init__(
            message="This time slot no longer exists, please refresh the schedule",
            code="SLOT_NOT_FOUND",
            details={"slot_id": slot_id},
        )


class BookingNotFoundException(NotFoundException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class SlotAlreadyBookedException(ConflictException):
    """Raised when a reservation loses to an existing or concurrent booking."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="This time is no longer available, please pick another",
            code="SLOT_ALREADY_BOOKED",
            details={"slot_id": slot_id},
        )


class SlotChangedException(ConflictException):
    """Raised when the caller's view of a slot's times is stale."""

    def __init__(
        self,
        slot_id: str,
        *,
        expected: Optional[Dict[str, Any]] = None,
        actual: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message="The times for this slot have changed, please refresh and try again",
            code="SLOT_CHANGED",
            details={"slot_id": slot_id, "expected": expected, "actual": actual},
        )


class DuplicateSlotException(ConflictException):
    """Raised when a provider publishes a time range that already exists."""

    def __init__(self, provider_id: str, ranges: list[Dict[str, Any]]):
        super().__init__(
            message="One or more of these times already exist in your schedule",
            code="DUPLICATE_SLOT",
            details={"provider_id": provider_id, "ranges": ranges},
        )


class SlotHeldException(ConflictException):
    """Raised when deleting a slot that a booking currently occupies."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="This slot is booked and cannot be deleted; cancel the booking first",
            code="SLOT_HELD",
            details={"slot_id": slot_id},
        )


class BookingStatusConflictException(ConflictException):
    """Raised by the booking store when a conditional status update misses."""

    def __init__(self, booking_id: str, expected: str, actual: Optional[str]):
        super().__init__(
            message="Booking has an unexpected status",
            code="UNEXPECTED_STATUS",
            details={"booking_id": booking_id, "expected": expected, "actual": actual},
        )


class NotCancellableException(ConflictException):
    def __init__(self, booking_id: str, current_status: Optional[str]):
        super().__init__(
            message="This booking is no longer confirmed and cannot be cancelled",
            code="NOT_CANCELLABLE",
            details={"booking_id": booking_id, "status": current_status},
        )


class TooLateToCancelException(BusinessRuleException):
    def __init__(self, booking_id: str, start_time: str):
        super().__init__(
            message="This session has already started or is too close to start to be cancelled",
            code="TOO_LATE_TO_CANCEL",
            details={"booking_id": booking_id, "start_time": start_time},
        )


class NotAuthorizedException(ForbiddenException):
    """Raised when the acting participant does not own the resource."""

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "You are not authorized to perform this action",
            code="NOT_AUTHORIZED",
            details=details or {},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_transient_store_error(exc: Exception) -> bool:
    """
    Check if an exception indicates a transient store failure.

    Covers connection pool exhaustion and dropped server connections,
    the failures worth retrying before any write is attempted.
    """
    error_str = str(exc).lower()
    return (
        "queuepool" in error_str
        or "server closed the connection" in error_str
        or "ssl connection has been closed unexpectedly" in error_str
        or "could not connect to server" in error_str
        or "database is locked" in error_str
        or ("timeout" in error_str and ("connection" in error_str or "pool" in error_str))
    )
