"""Error taxonomy for store operations.

Every store call either returns a document or raises one of these. They are
local and non-retriable; the request layer turns them into a rejected
request carrying ``detail`` as the human-readable reason.
"""
from __future__ import annotations


class ChitChatError(Exception):
    """Base class for all store failures."""

    status_code: int = 400
    default_detail: str = "Request rejected."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationError(ChitChatError):
    # Same detail for unknown id and wrong secret (no account enumeration).
    status_code = 401
    default_detail = "Invalid user ID or password"


class AuthorizationError(ChitChatError):
    status_code = 403
    default_detail = "You're not the author!"


class NotFoundError(ChitChatError):
    status_code = 404
    default_detail = "Message doesn't exist"


class ValidationError(ChitChatError):
    """Malformed message text.

    ``reason`` is a short machine-friendly tag, ``detail`` the message shown
    to the user.
    """

    status_code = 400
    default_detail = "Invalid message text"

    def __init__(self, reason: str, detail: str | None = None) -> None:
        self.reason = reason
        super().__init__(detail)


class InternalError(ChitChatError):
    status_code = 500
    default_detail = "Something is wrong with the server... Please try again!"


__all__ = [
    "ChitChatError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ValidationError",
    "InternalError",
]
