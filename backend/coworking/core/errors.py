"""
Error taxonomy for the availability and reservation core.

Every error a request can surface derives from BookingError and carries
its HTTP status, a machine-readable code, a human-readable message and,
where one exists, the offending date so the calendar can highlight it.
"""

from datetime import date
from typing import Optional


class BookingError(Exception):
    status_code: int = 400
    code: str = "booking_error"

    def __init__(self, message: str, failing_date: Optional[date] = None):
        super().__init__(message)
        self.message = message
        self.failing_date = failing_date

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "date": self.failing_date.isoformat() if self.failing_date else None,
        }


class InvalidInput(BookingError):
    """Missing or malformed request parameters. Never retried."""

    code = "invalid_input"


class InvalidMonth(InvalidInput):
    code = "invalid_month"


class InvalidRange(InvalidInput):
    code = "invalid_range"


class ResourceNotFound(InvalidInput):
    status_code = 404
    code = "resource_not_found"


class LeadTimeViolation(BookingError):
    code = "lead_time_violation"


class RangeUnavailable(BookingError):
    status_code = 409
    code = "range_unavailable"


class StorageConflict(BookingError):
    """Optimistic storage transaction kept losing to concurrent writers."""

    status_code = 409
    code = "storage_conflict"


class Misconfiguration(BookingError):
    status_code = 500
    code = "misconfiguration"


class ExternalDependencyUnavailable(BookingError):
    status_code = 503
    code = "external_dependency_unavailable"


class DataCorruption(Exception):
    """
    Stored occupancy/lock data could not be decoded.

    Only raised by strict decoders; read paths catch it and treat the
    collection as empty.
    """
