"""Exceptions and user-facing error messages.

Parsing and classification never raise; the exceptions here belong to the
conversation state, the store, the import pipeline and stream handling.
"""

from __future__ import annotations


class ChatContentError(Exception):
    """Base exception for all chatcontent errors."""


class ConversationNotFoundError(ChatContentError):
    """Raised when a conversation id is not known to the state or store."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class ExportFormatError(ChatContentError):
    """Raised when an export file does not have the expected shape."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StreamError(ChatContentError):
    """An error reported in-band by the chat stream or by its transport.

    Attributes:
        message: Text shown to the user
        code: Machine-readable error code (e.g. RESOURCE_EXHAUSTED)
        status: HTTP or upstream status, when known
    """

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", status: int | None = None) -> None:
        self.message = message
        self.code = code
        self.status = status
        super().__init__(message)

    def to_event(self) -> dict:
        event: dict = {"error": self.message, "code": self.code}
        if self.status is not None:
            event["status"] = self.status
        return event


def get_http_error_message(status: int) -> str:
    """Message shown for a non-2xx response from the chat endpoint."""
    if status == 400:
        return "Invalid request. Please try again."
    if status == 401:
        return "Unauthorized. Please check API configuration."
    if status == 403:
        return "Access forbidden. Please check your permissions."
    if status == 404:
        return "Service not found. Please try again later."
    if status == 429:
        return "Too many requests. Please wait and try again."
    if status == 500:
        return "Server error. Please try again later."
    if status in (502, 503, 504):
        return "Service temporarily unavailable. Please try again later."
    return f"Request failed (Error {status}). Please try again."


_UPSTREAM_ERRORS: dict[int, tuple[str, str]] = {
    400: ("Invalid request. Unavailable service.", "INVALID_ARGUMENT"),
    403: ("API key lacks required permissions.", "PERMISSION_DENIED"),
    404: ("Model or resource not found.", "NOT_FOUND"),
    429: ("Rate limit exceeded. Please try again later.", "RESOURCE_EXHAUSTED"),
    500: ("Model server error. Please try again.", "INTERNAL"),
    503: ("Model service temporarily unavailable. Please try again.", "UNAVAILABLE"),
    504: ("Request timed out. Try a shorter message.", "DEADLINE_EXCEEDED"),
}


def describe_upstream_error(status: int | None, reason: str | None = None) -> StreamError:
    """Translate an upstream model failure into a StreamError for the client.

    Args:
        status: HTTP status of the failed upstream call, or None for
            network-level failures
        reason: Optional machine reason from the error details
            (e.g. API_KEY_INVALID)
    """
    if not status:
        return StreamError("Network error. Please check your connection.", "NETWORK_ERROR")

    if status == 400 and reason == "API_KEY_INVALID":
        return StreamError("Invalid API key. Please check your configuration.", "INVALID_API_KEY", status)

    if status in _UPSTREAM_ERRORS:
        message, code = _UPSTREAM_ERRORS[status]
        return StreamError(message, code, status)

    return StreamError("Model API error. Please try again.", "UNKNOWN_ERROR", status)


def blocked_response_error(block_reason: str | None) -> StreamError:
    """Error for a response the upstream model refused to produce."""
    if block_reason:
        return StreamError(f"Response blocked: {block_reason.lower()}.", "SAFETY_BLOCKED", 200)
    return StreamError("Invalid response from the model API.", "RESPONSE_ERROR", 200)
