"""Domain errors raised by the service layer.

Services never build HTTP responses themselves; they raise one of these and
the handler registered in ``clinic_api.main`` turns it into a JSON response.
"""

from typing import Any, Optional


class ClinicError(Exception):
    """Base class for every domain error."""

    status_code: int = 400
    code: str = "ClinicError"

    def __init__(self, detail: str, code: Optional[str] = None, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        if code:
            self.code = code
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"detail": self.detail, "code": self.code}
        body.update(self.extra)
        return body


class ValidationError(ClinicError):
    """Malformed or out-of-policy input (time format, duration, business hours)."""

    status_code = 400
    code = "ValidationError"


class ConflictError(ClinicError):
    """The practitioner is already booked; ``conflict`` carries the clashing appointment."""

    status_code = 409
    code = "ConflictError"

    def __init__(self, detail: str, conflict: dict):
        super().__init__(detail, conflict=conflict)
        self.conflict = conflict


class Forbidden(ClinicError):
    status_code = 403
    code = "Forbidden"


class IllegalTransition(ClinicError):
    status_code = 400
    code = "IllegalTransition"


class NotFound(ClinicError):
    status_code = 404
    code = "NotFound"


class PlanNotFound(NotFound):
    code = "PlanNotFound"


class DuplicateActiveSubscription(ClinicError):
    status_code = 400
    code = "DuplicateActiveSubscription"


class NotificationFailed(ClinicError):
    """Only raised where delivering the notification *is* the requested operation."""

    status_code = 502
    code = "NotificationFailed"
