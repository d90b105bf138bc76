"""
Centralized error handling for allocation, booking and lift failures.

Services raise ParkingError subclasses (stable `kind` strings); routes stay thin and the
exception handler registered in main maps kinds to HTTP status codes from one table.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

# ---------------------------------------------------------------------------
# Error kinds (stable, reported to callers as-is)
# ---------------------------------------------------------------------------

KIND_NOT_FOUND = "not_found"
KIND_NO_CAPACITY = "no_capacity"
KIND_INVALID_STATE = "invalid_state"
KIND_INVALID_ARGUMENT = "invalid_argument"
KIND_CONFLICT = "conflict"

# HTTP status codes for known error categories
STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_INTERNAL_ERROR = 500


class ParkingError(Exception):
    """Base for every recoverable core failure. Never fatal; the caller gets `kind` + message."""

    kind = "error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        out = {"error": self.kind, "detail": self.message}
        if self.context:
            out["context"] = self.context
        return out


class NotFound(ParkingError):
    kind = KIND_NOT_FOUND


class NoCapacity(ParkingError):
    kind = KIND_NO_CAPACITY


class InvalidState(ParkingError):
    kind = KIND_INVALID_STATE


class InvalidArgument(ParkingError):
    kind = KIND_INVALID_ARGUMENT


class Conflict(ParkingError):
    kind = KIND_CONFLICT


# ---------------------------------------------------------------------------
# kind -> status code. Add new kinds here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

ERROR_STATUS_RULES: dict[str, int] = {
    KIND_NOT_FOUND: STATUS_NOT_FOUND,
    KIND_NO_CAPACITY: STATUS_CONFLICT,
    KIND_INVALID_STATE: STATUS_CONFLICT,
    KIND_INVALID_ARGUMENT: STATUS_BAD_REQUEST,
    KIND_CONFLICT: STATUS_CONFLICT,
}


def status_for(exc: ParkingError) -> int:
    return ERROR_STATUS_RULES.get(exc.kind, STATUS_INTERNAL_ERROR)


async def parking_error_handler(request: Request, exc: ParkingError) -> JSONResponse:
    """Map a ParkingError raised anywhere below a route into a structured JSON response."""
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())
