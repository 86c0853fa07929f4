"""Domain error taxonomy.

Every error carries a human-readable ``message`` and an optional list of
``details``; the API exception handler renders both along with the class's
``status_code``.
"""

from __future__ import annotations


class CanvassError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: list[str] | None = None):
        self.message = message or self.default_message
        self.details = list(details) if details else []
        super().__init__(self.message)


class ValidationError(CanvassError):
    status_code = 400
    default_message = "Validation failed"


class ConflictError(CanvassError):
    status_code = 400
    default_message = "Conflict"


class AuthRequiredError(CanvassError):
    status_code = 401
    default_message = "Authentication required"


class AccessDeniedError(CanvassError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(CanvassError):
    status_code = 404
    default_message = "Not found"


class LockedError(CanvassError):
    status_code = 423
    default_message = "Form is locked and not accepting responses"


class StorageError(CanvassError):
    status_code = 500
    default_message = "Storage failure"


class ExportTooLargeError(StorageError):
    default_message = (
        "Data too large for spreadsheet export. "
        "Some responses contain very long text or images."
    )
