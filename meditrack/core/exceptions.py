"""
Error taxonomy for the appointment engine.

Every error is an ``HTTPException`` carrying a stable machine ``code`` so the
services can raise them directly and the API renders them as::

    {"error": <code>, "message": <detail>, "retryable": <bool>}

Only ``StoreUnavailable`` is retryable; everything else is a permanent
rejection of that specific call.
"""
from typing import Dict, Optional

from fastapi import HTTPException, status


class DomainError(HTTPException):
    code: str = "DomainError"
    http_status: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request rejected"
    retryable: bool = False

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.http_status,
            detail=detail or self.default_detail,
            headers=headers,
        )

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.detail,
            "retryable": self.retryable,
        }


# Admission
class InvalidInput(DomainError):
    code = "InvalidInput"
    default_detail = "Please fill in all fields"


class InvalidDate(DomainError):
    code = "InvalidDate"
    default_detail = "Appointment date cannot be in the past"


class InvalidSlot(DomainError):
    code = "InvalidSlot"
    default_detail = "Time must be a half-hour slot within clinic hours"


class DailyLimitExceeded(DomainError):
    code = "DailyLimitExceeded"
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "You cannot book more appointments today"


# Lifecycle
class NotFound(DomainError):
    code = "NotFound"
    http_status = status.HTTP_404_NOT_FOUND
    default_detail = "Appointment not found"


class AlreadyClaimed(DomainError):
    code = "AlreadyClaimed"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Appointment has already been accepted by another doctor"


class InvalidTransition(DomainError):
    code = "InvalidTransition"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Appointment cannot move to the requested status"


# Annotations
class NotOwner(DomainError):
    code = "NotOwner"
    http_status = status.HTTP_403_FORBIDDEN
    default_detail = "You are not a participant of this appointment"


class NotCompleted(DomainError):
    code = "NotCompleted"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Appointment is not completed yet"


class AlreadyExists(DomainError):
    code = "AlreadyExists"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Record already exists for this appointment"


class InvalidRating(DomainError):
    code = "InvalidRating"
    default_detail = "Rating must be a whole number from 1 to 5"


class CommentTooLong(DomainError):
    code = "CommentTooLong"
    default_detail = "Comment is too long"


class InvalidMedicine(DomainError):
    code = "InvalidMedicine"
    default_detail = "Please fill in all medicine fields"


# Collaborators
class StoreUnavailable(DomainError):
    code = "StoreUnavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The record store is temporarily unavailable"
    retryable = True


class RateLimited(DomainError):
    code = "RateLimited"
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests. Please try again later."
