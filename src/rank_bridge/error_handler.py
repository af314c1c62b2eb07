from typing import Optional

import httpx

# Substrings the Roblox APIs put in response bodies for lock contention and throttling
TRANSIENT_BODY_MARKERS = ("FailedToAcquireLock", "TooManyRequests")


class BridgeError(Exception):
    """Base class for failures raised by the rank bridge library."""

    kind = "InternalError"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def detail(self) -> str:
        return str(self)


class UpstreamUnavailableError(BridgeError):
    """Raised when a read from the groups API (roles, owner, current role) fails."""

    kind = "UpstreamUnavailable"


class UpstreamError(BridgeError):
    """Raised when a membership write hits a fatal status or exhausts its retries."""

    kind = "UpstreamError"

    def __init__(
        self, message: str, status_code: Optional[int] = None, attempts: int = 0
    ):
        super().__init__(message, status_code=status_code)
        self.attempts = attempts


class ClassifiedError:
    """A structured representation of a failed remote response."""

    def __init__(
        self,
        error_type: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        self.error_type = error_type
        self.status_code = status_code
        self.detail = detail

    @property
    def is_transient(self) -> bool:
        return self.error_type in ("rate_limit", "server_error", "lock_contention")

    def __str__(self):
        return f"ClassifiedError(type={self.error_type}, status={self.status_code}, detail={self.detail})"


def response_detail(response: httpx.Response) -> str:
    """Body text of a response, or a short HTTP status description when it is empty."""
    text = response.text
    return text if text else f"Roblox API failed HTTP {response.status_code}"


def classify_response(response: httpx.Response) -> ClassifiedError:
    """
    Classifies a non-success response from the groups API.

    Rate limits, server errors and lock contention are transient; every other
    status is final for the request that produced it.
    """
    status_code = response.status_code
    body = response.text or ""
    detail = response_detail(response)

    if any(marker in body for marker in TRANSIENT_BODY_MARKERS):
        return ClassifiedError("lock_contention", status_code, detail)
    if status_code == 429:
        return ClassifiedError("rate_limit", status_code, detail)
    if status_code >= 500:
        return ClassifiedError("server_error", status_code, detail)
    if status_code in (401, 403):
        return ClassifiedError("authentication", status_code, detail)
    if 400 <= status_code < 500:
        return ClassifiedError("invalid_request", status_code, detail)

    return ClassifiedError("unknown", status_code, detail)


def is_transient_response(response: httpx.Response) -> bool:
    """Checks whether a failed response is safe to retry."""
    return classify_response(response).is_transient


def mask_credential(credential: Optional[str]) -> str:
    """Shows only the tail of an API key so log lines never carry the full secret."""
    if not credential:
        return "<unset>"
    if len(credential) <= 6:
        return "..." + "*" * len(credential)
    return f"...{credential[-6:]}"
