"""
Typed errors raised by the study services and mapped to HTTP responses in main.py.
"""


class FlashdeckError(Exception):
    """Base exception for all FlashDeck service errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FlashdeckError):
    """Raised when input is malformed (rating, id, limit, mismatched ids)."""

    status_code = 400


class AuthenticationError(FlashdeckError):
    """Raised when credentials or session tokens are missing or invalid."""

    status_code = 401


class ForbiddenError(FlashdeckError):
    """Raised when the caller is authenticated but does not own the resource."""

    status_code = 403


class NotFoundError(FlashdeckError):
    """Raised when a deck, flashcard or study record does not exist."""

    status_code = 404


class ConflictError(FlashdeckError):
    """Raised on duplicates and stale review submissions."""

    status_code = 409
