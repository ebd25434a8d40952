"""
Error taxonomy

Every failure a handler can report is one of these. Each carries the HTTP
status it maps to; the exception handlers in main.py turn them into
`{"message": ...}` JSON bodies.
"""

from typing import Optional


class ConfigError(RuntimeError):
    """Fatal startup configuration problem."""


class TaskTrackerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskTrackerError):
    status_code = 400


class InvalidId(ValidationError):
    pass


class ConflictError(TaskTrackerError):
    status_code = 400


class NotFound(TaskTrackerError):
    status_code = 404


class AuthError(TaskTrackerError):
    status_code = 401


class InvalidToken(AuthError):
    status_code = 403


class StoreError(TaskTrackerError):
    """Unexpected document-store failure. `detail` is the driver's message."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail
