"""
Exception types raised by the reconciliation engine.

Validation and not-found errors carry a message meant for the end user.
Everything else is reported as a generic server error with the underlying
detail attached for diagnostics.
"""


class ReconciliationError(Exception):
    """Base class for all reconciliation errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReconciliationError):
    """A request identifier or the uploaded document is missing or malformed."""

    status_code = 400


class NotFoundError(ReconciliationError):
    """No order exists for the given identifier within the given store."""

    status_code = 404


class ExtractionFailure(ReconciliationError):
    """The text extraction backend could not read the document."""


class ConfigurationError(ReconciliationError):
    """The service cannot be assembled, e.g. an unknown extraction backend."""
