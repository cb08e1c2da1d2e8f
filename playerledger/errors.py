"""
errors.py - Error taxonomy shared by services and the REST layer.

Every error carries a machine-readable ``kind`` and the HTTP status the API
maps it to. InvalidInputError and NotFoundError also subclass ValueError and
KeyError so callers that catch the builtin types keep working.
"""


class LedgerError(Exception):
    """Base class for all service errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.kind

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class InvalidInputError(LedgerError, ValueError):
    kind = "invalid_input"
    status_code = 400


class NotFoundError(LedgerError, KeyError):
    kind = "not_found"
    status_code = 404


class LimitExceededError(LedgerError):
    """A spend would push the window total past its limit."""

    kind = "limit_exceeded"
    status_code = 403


class StoreUnavailableError(LedgerError):
    """Transient repository failure; safe for the caller to retry."""

    kind = "store_unavailable"
    status_code = 500
