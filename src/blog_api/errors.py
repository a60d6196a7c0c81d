"""
Error hierarchy for the blog API.

Every error carries an HTTP status and a stable machine-readable code; the
handlers in ``error_handlers`` turn them into JSON responses.
"""
from typing import Any, Dict, List, Optional


class BlogApiError(Exception):
    """Base exception for all request-terminating failures."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class ValidationFailed(BlogApiError):
    """One or more request fields failed their declared rules."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, errors: List[Dict[str, str]]):
        super().__init__("Invalid request data")
        self.errors = errors

    def to_response(self) -> Dict[str, Any]:
        return {"errors": self.errors, "code": self.code}


class Unauthenticated(BlogApiError):
    status_code = 401
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class InvalidCredentials(BlogApiError):
    """Same message for unknown user and wrong password."""

    status_code = 401
    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class Forbidden(BlogApiError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class NotFound(BlogApiError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")


class Conflict(BlogApiError):
    status_code = 409
    code = "CONFLICT"


class UpstreamVerificationFailed(BlogApiError):
    status_code = 400
    code = "CAPTCHA_FAILED"

    def __init__(self, message: str = "CAPTCHA verification failed"):
        super().__init__(message)


class StorageUnavailable(BlogApiError):
    """The database could not serve the request; details stay in the logs."""

    status_code = 500
    code = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str = "Database error"):
        super().__init__(message)
