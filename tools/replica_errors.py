"""
Backend error taxonomy + replica rejection classifier.

classify() turns any raised failure (exception, error payload dict, string,
None) into an ErrorInfo the UI can branch on. The "service stopped" family
(IC0508 / reject code 5 / "canister ... stopped") gets a fixed friendly message;
everything else keeps its own message.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ErrorKind = Literal["serviceStopped", "generic"]

SERVICE_STOPPED = "serviceStopped"
GENERIC = "generic"

SERVICE_STOPPED_MESSAGE = (
    "The backend service is temporarily unavailable because the canister is stopped. "
    "Please try again later or contact support."
)
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"
TIMEOUT_MESSAGE = "initialization timed out"
NOT_READY_MESSAGE = "Backend connection is not ready. Please wait and try again."

_STOPPED_STATUS_TOKEN = "ic0508"
_REJECT_CODE_TOKEN = "reject code: 5"


# ── Exceptions ────────────────────────────────────────────────────────────────

class BackendError(RuntimeError):
    """Base for every failure raised by the client layer."""


class ClientConstructionError(BackendError):
    """Client factory could not produce a bound client."""


class InitializationTimeout(BackendError):
    """Client did not appear within the readiness wait."""


class BackendCallError(BackendError):
    """A backend tool call came back flagged as an error."""

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation
        self.message = message


class MutationError(BackendError):
    """A write operation failed. Raised to whoever invoked it."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"Failed to {operation}: {message}")
        self.operation = operation
        self.message = message


class NotReadyError(MutationError):
    def __init__(self, operation: str):
        super().__init__(operation, NOT_READY_MESSAGE)


# ── Classification ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    message: str
    cause: Any = None


def _message_of(failure: Any) -> str:
    if failure is None:
        return ""
    if isinstance(failure, dict):
        if "message" in failure:
            return str(failure["message"] or "")
        return str(failure)
    message = getattr(failure, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(failure)


def classify(failure: Any) -> ErrorInfo:
    text = _message_of(failure)
    lowered = text.lower()

    if (
        _STOPPED_STATUS_TOKEN in lowered
        or _REJECT_CODE_TOKEN in lowered
        or "is stopped" in lowered
        or ("canister" in lowered and "stopped" in lowered)
    ):
        return ErrorInfo(kind=SERVICE_STOPPED, message=SERVICE_STOPPED_MESSAGE, cause=failure)

    return ErrorInfo(kind=GENERIC, message=text or UNKNOWN_ERROR_MESSAGE, cause=failure)


def is_service_stopped(failure: Any) -> bool:
    return classify(failure).kind == SERVICE_STOPPED
