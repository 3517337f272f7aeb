"""Domain exceptions and provider error classification."""

import asyncio
from enum import Enum


class ProviderErrorKind(str, Enum):
    """Closed set of provider failure kinds used to pick a recovery strategy."""

    MODEL_UNAVAILABLE = "model_unavailable"  # Model missing or retired - try another model
    RATE_LIMITED = "rate_limited"  # Quota exhausted - stop
    TRANSIENT = "transient"  # Network/timeout/5xx - stop, caller decides
    FATAL = "fatal"  # Bad request, auth, unknown - stop


class ProviderError(Exception):
    """Error raised at the AI provider boundary, tagged with its kind."""

    def __init__(self, kind: ProviderErrorKind, message: str, model: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.model = model


class DocumentExtractionError(Exception):
    """A document could not be parsed or contained no text."""


class StorageError(Exception):
    """Object storage rejected an upload or is unreachable."""


class ChatNotFoundError(Exception):
    """The chat does not exist or belongs to another user."""


_MODEL_UNAVAILABLE_PATTERNS = ("not found", "404", "is not supported", "does not exist")
_RATE_LIMIT_PATTERNS = ("rate limit", "429", "resource exhausted", "resource_exhausted", "quota")
_TRANSIENT_PATTERNS = (
    "timeout",
    "timed out",
    "connection",
    "network",
    "temporarily unavailable",
    "503",
    "502",
    "500",
    "internal error",
    "econnreset",
    "socket",
)


def _status_code(error: BaseException) -> int | None:
    """Pull an HTTP-like status code off provider SDK exceptions."""
    for attr in ("code", "status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def classify_provider_error(error: BaseException) -> ProviderErrorKind:
    """Classify a provider SDK exception.

    Status codes win over message matching; anything unrecognized is FATAL.

    Args:
        error: The exception raised by the provider client

    Returns:
        ProviderErrorKind for the failure
    """
    if isinstance(error, ProviderError):
        return error.kind

    code = _status_code(error)
    if code is not None:
        if code == 404:
            return ProviderErrorKind.MODEL_UNAVAILABLE
        if code == 429:
            return ProviderErrorKind.RATE_LIMITED
        if code == 408 or code >= 500:
            return ProviderErrorKind.TRANSIENT
        return ProviderErrorKind.FATAL

    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return ProviderErrorKind.TRANSIENT

    message = str(error).lower()
    if any(p in message for p in _MODEL_UNAVAILABLE_PATTERNS):
        return ProviderErrorKind.MODEL_UNAVAILABLE
    if any(p in message for p in _RATE_LIMIT_PATTERNS):
        return ProviderErrorKind.RATE_LIMITED
    if any(p in message for p in _TRANSIENT_PATTERNS):
        return ProviderErrorKind.TRANSIENT
    return ProviderErrorKind.FATAL
