"""
Typed scheduling failures.

Every expected outcome the caller has to present (no table, bad input, policy
rejection, state conflict) is a ``SchedulingError`` subclass carrying a stable
``code`` and the HTTP status the API layer answers with. Routers stay thin:
one exception handler in main.py turns these into responses.
"""
from __future__ import annotations

from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse


class SchedulingError(Exception):
    code = "scheduling_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.context}


# Input validation

class InvalidPartySize(SchedulingError):
    code = "invalid_party_size"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PastTime(SchedulingError):
    code = "past_time"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


# Lookups

class RestaurantNotFound(SchedulingError):
    code = "restaurant_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ReservationNotFound(SchedulingError):
    code = "reservation_not_found"
    status_code = status.HTTP_404_NOT_FOUND


# Resource exhaustion, including lost booking races

class NoAvailability(SchedulingError):
    code = "no_availability"
    status_code = status.HTTP_409_CONFLICT


# Lifecycle state

class AlreadyCancelled(SchedulingError):
    code = "already_cancelled"
    status_code = status.HTTP_409_CONFLICT


class AlreadyCompleted(SchedulingError):
    code = "already_completed"
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(SchedulingError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT


# Cancellation policy; context carries the policy terms

class OnlineCancellationDisallowed(SchedulingError):
    code = "online_cancellation_disallowed"
    status_code = status.HTTP_403_FORBIDDEN


class TooLateToCancel(SchedulingError):
    code = "too_late_to_cancel"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


def scheduling_error_response(exc: SchedulingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})
