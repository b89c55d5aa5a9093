"""Custom exception hierarchy for the intake pipeline."""

from typing import Dict, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class IngestionError(AppError):
    """Raised when a document payload is rejected before extraction."""
    pass


class UnsupportedMediaType(IngestionError):
    """Raised when the declared mime type is not accepted."""

    def __init__(self, mime_type: Optional[str]):
        super().__init__(f"Unsupported media type: {mime_type or 'unknown'}")
        self.mime_type = mime_type


class PayloadTooLarge(IngestionError):
    """Raised when a payload exceeds its size limit."""

    def __init__(self, size: int, limit: int, kind: str):
        super().__init__(f"{kind} payload of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit
        self.kind = kind


class ExtractionFailure(AppError):
    """Raised when the document-understanding service cannot produce a record."""

    def __init__(self, message: str, reason: str = "service_error", original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.reason = reason


class AnalysisFailure(AppError):
    """Raised when the plain-language analysis of a verified draft fails."""
    pass


class PersistenceError(DatabaseError):
    """Raised when the parent policy record cannot be committed."""
    pass


class DraftValidationError(AppError):
    """Raised when a draft with validation errors is submitted for commit."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__(f"Draft has {len(errors)} validation error(s): {sorted(errors)}")
        self.errors = dict(errors)


class InvalidTransitionError(AppError):
    """Raised when an event is not accepted by the current wizard state."""

    def __init__(self, state: str, event: str):
        super().__init__(f"Event '{event}' is not allowed in state '{state}'")
        self.state = state
        self.event = event
