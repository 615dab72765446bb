"""
Error taxonomy shared by the API server and the editor client.

Every failure the editor can display is one of these classes.  Vendor
(generation API) failures carry a stable ``code`` used on the wire and a
fixed user-facing ``message``; the raw vendor text is kept in ``details``
for logs only.
"""
from __future__ import annotations

from typing import Dict, Optional, Type


class SmartDocsError(Exception):
    """Base class for all SmartDocsAI errors."""

    message: str = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        self.details = details or ""
        super().__init__(self.message)


class ValidationError(SmartDocsError):
    """Rejected locally or by the server before any work was done."""

    message = "Invalid input."


class RemoteUnavailable(SmartDocsError):
    """Network failure or 5xx from the API server."""

    message = "The server is unavailable. Please try again later."


# Document store failures use the store's own name.
StoreUnavailable = RemoteUnavailable


class NotFound(SmartDocsError):
    message = "Document not found."


class Unauthorized(SmartDocsError):
    message = "Your session has expired. Please sign in again."


# ---------------------------------------------------------------------------
# Generation API failures
# ---------------------------------------------------------------------------

class VendorError(SmartDocsError):
    """Failure reported by the generative-AI vendor."""

    code: str = "unknown"


class Overloaded(VendorError):
    code = "overloaded"
    message = "The AI service is currently overloaded. Please try again in a few moments."


class InvalidCredentials(VendorError):
    code = "invalid_credentials"
    message = "The AI service rejected the configured API key. Please contact the administrator."


class QuotaExceeded(VendorError):
    code = "quota_exceeded"
    message = "The AI usage quota has been exceeded. Please try again later."


class NetworkError(VendorError):
    code = "network_error"
    message = "Could not reach the AI service. Please check your connection."


class Timeout(VendorError):
    code = "timeout"
    message = "The AI service took too long to respond. Please try again."


class Unknown(VendorError):
    code = "unknown"
    message = "Failed to generate content. Please try again."


VENDOR_ERRORS: Dict[str, Type[VendorError]] = {
    cls.code: cls
    for cls in (Overloaded, InvalidCredentials, QuotaExceeded, NetworkError, Timeout, Unknown)
}


# Checked in order; the first group with a matching marker wins.  Gemini
# rate limiting reads "429 ... check quota" and classifies as overloaded.
_VENDOR_MARKERS = (
    (Overloaded, ("429", "503", "overloaded", "too many requests", "unavailable")),
    (InvalidCredentials, ("api key", "api_key", "401", "403", "permission", "unauthenticated")),
    (QuotaExceeded, ("quota", "resource_exhausted", "billing")),
    (Timeout, ("timeout", "timed out", "deadline")),
    (NetworkError, ("network", "connect", "fetch", "dns")),
)


def classify_vendor_error(raw: str) -> VendorError:
    """Map raw vendor error text to the matching VendorError instance."""
    lowered = (raw or "").lower()
    for cls, markers in _VENDOR_MARKERS:
        if any(marker in lowered for marker in markers):
            return cls(details=raw)
    return Unknown(details=raw)


def vendor_error_from_code(code: Optional[str], details: str = "") -> VendorError:
    """Rebuild a VendorError from the ``code`` field of a 503 response."""
    return VENDOR_ERRORS.get(code or "", Unknown)(details=details)


def user_message(exc: BaseException) -> str:
    """The single display string for any failure."""
    if isinstance(exc, SmartDocsError):
        return exc.message
    # Anything unexpected is treated as an unclassified vendor/transport error.
    return classify_vendor_error(str(exc)).message
