# app/core/exceptions.py
"""
Error taxonomy for the lifecycle engine.

Service functions raise these; the REST layer maps them to HTTP status
codes (see app/main.py) and the GraphQL layer maps them to error
extensions (see app/graphql/mutations.py).
"""
from typing import Optional


class EngineError(Exception):
    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, "field": self.field}


class InvalidInput(EngineError):
    """Client-fixable input problem, attributed to a single field."""

    code = "BAD_USER_INPUT"
    status_code = 400


class Unauthenticated(EngineError):
    code = "UNAUTHENTICATED"
    status_code = 401


class Forbidden(EngineError):
    code = "FORBIDDEN"
    status_code = 403


class NotFound(EngineError):
    code = "NOT_FOUND"
    status_code = 404


class FailedPrecondition(EngineError):
    """Illegal state transition for the event's current status or timing."""

    code = "FAILED_PRECONDITION"
    status_code = 409


class Internal(EngineError):
    code = "INTERNAL"
    status_code = 500
