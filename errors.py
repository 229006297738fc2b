"""
Error types raised by the LMS services.

Each error carries the HTTP status the API answers with, so route handlers can
let them propagate to the exception handler registered in main.py.
"""
from typing import Optional


class LMSError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class InvalidReference(LMSError):
    status_code = 400


class ValidationFailed(LMSError):
    status_code = 400


class NotFound(LMSError):
    status_code = 404


class Conflict(LMSError):
    status_code = 400


class ImportInProgress(LMSError):
    status_code = 409


class NotEnrolled(LMSError):
    status_code = 400

    def __init__(self, message: str = "You are not enrolled in this course", **kwargs):
        super().__init__(message, **kwargs)


class AuthenticationFailed(LMSError):
    status_code = 401


class PermissionDenied(LMSError):
    status_code = 403


class RemoteUnavailable(LMSError):
    status_code = 502


class ConfigurationError(LMSError):
    status_code = 500
