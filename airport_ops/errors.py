"""Exception hierarchy shared by every airport operations service."""
from __future__ import annotations


class AirportOpsError(RuntimeError):
    """Base class for errors reported back to the caller."""

    kind = "error"


class ValidationError(AirportOpsError):
    """Raised when a payload is missing a required field or is malformed."""

    kind = "validation"


class Forbidden(AirportOpsError):
    """Raised when the acting role may not perform an operation."""

    kind = "forbidden"


class Conflict(AirportOpsError):
    """Raised when the stored state no longer allows the requested change."""

    kind = "conflict"


class NotFound(AirportOpsError):
    """Raised when a referenced record does not exist."""

    kind = "not_found"


class StoreUnavailable(AirportOpsError):
    """Raised on transient database failures. Callers may retry."""

    kind = "store_unavailable"
