"""Custom exception classes for the listing studio."""

from typing import List, Optional


class ListingStudioError(Exception):
    """Base exception for all studio errors."""
    pass


class ConfigurationError(ListingStudioError):
    """Configuration or initialization errors."""
    pass


class InsufficientCredits(ListingStudioError):
    """Credit balance does not cover the requested operation."""

    def __init__(self, required: int, available: int, message: Optional[str] = None):
        self.required = required
        self.available = available
        super().__init__(
            message
            or f"Insufficient credits. This action requires {required} credits, but you have {available}."
        )


class ValidationBlocked(ListingStudioError):
    """Compliance rules denied the edit plan."""

    def __init__(self, reason: str, risk_level=None, warnings: Optional[List[str]] = None):
        self.reason = reason
        self.risk_level = risk_level
        self.warnings = list(warnings or [])
        super().__init__(reason)


class MissingParameter(ListingStudioError):
    """A required option is absent for the chosen operation type."""

    def __init__(self, parameter: str, operation_type: Optional[str] = None):
        self.parameter = parameter
        self.operation_type = operation_type
        message = f"Missing required parameter '{parameter}'"
        if operation_type:
            message += f" for {operation_type}"
        super().__init__(message)


class InvalidParameter(ListingStudioError):
    """An option is present but holds an unusable value."""

    def __init__(self, detail: str, operation_type: Optional[str] = None):
        self.detail = detail
        self.operation_type = operation_type
        super().__init__(f"Invalid options for {operation_type}: {detail}" if operation_type else detail)


class ExternalServiceError(ListingStudioError):
    """Base class for failures reported by the generative capability."""

    def __init__(self, provider: str, message: str, status_code: int = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} error: {message}")


class TransientExternalFailure(ExternalServiceError):
    """Rate-limit, quota or temporary unavailability. Safe to retry."""
    pass


class RateLimitError(TransientExternalFailure):
    """API rate limit exceeded."""

    def __init__(self, provider: str, retry_after: int = None):
        self.retry_after = retry_after
        message = "Rate limit exceeded (429)"
        if retry_after:
            message += f", retry after {retry_after}s"
        super().__init__(provider, message, 429)


class PermanentExternalFailure(ExternalServiceError):
    """Any non-retryable failure from the generative capability."""
    pass


class AuthenticationError(PermanentExternalFailure):
    """API authentication failed."""

    def __init__(self, provider: str, status_code: int = 401):
        super().__init__(provider, "Authentication failed", status_code)


class NoOutputProduced(PermanentExternalFailure):
    """The capability answered but returned no usable output."""
    pass


class ImageProcessingError(ListingStudioError):
    """Error processing image data."""
    pass


# Message fragments that mark a failure as worth retrying
TRANSIENT_SIGNATURES = ("429", "503", "quota", "rate limit", "unavailable")


def is_transient(error: BaseException) -> bool:
    """
    Classify a failure as transient (retryable) or permanent.

    Typed failures decide by class. Anything else is matched against the
    rate-limit/quota/server-unavailable message signatures.
    """
    if isinstance(error, TransientExternalFailure):
        return True
    if isinstance(error, (PermanentExternalFailure, ListingStudioError)):
        return False
    message = str(error).lower()
    return any(signature in message for signature in TRANSIENT_SIGNATURES)
