"""
Application error taxonomy.

Every error carries the HTTP status it maps to and a machine-readable code.
Handlers in main.py render them as ``{"message": ..., "error": ..., **extra}``.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "error": self.code, **self.extra}


class ValidationError(AppError):
    """Bad request shape or missing fields"""
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthError(AppError):
    """Missing, invalid or expired credentials"""
    status_code = 401
    code = "AUTH_ERROR"


class AuthorizationError(AppError):
    """Plan, trial, suspension or role denial"""
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMITED"


class UpstreamGenerationError(AppError):
    """
    External generation failed, timed out or returned unparsable output.

    ``fallback`` is the safe placeholder payload, when one is defined.
    """
    status_code = 500
    code = "GENERATION_FAILED"

    def __init__(self, message: str, fallback: Optional[Dict[str, Any]] = None, **extra: Any):
        super().__init__(message, **extra)
        self.fallback = fallback

    def to_dict(self) -> Dict[str, Any]:
        body = {"message": "AI generation failed", "error": self.message, "code": self.code, **self.extra}
        if self.fallback is not None:
            body["fallback"] = self.fallback
        return body


class InternalError(AppError):
    """
    Unexpected failure. ``message`` is the diagnostic detail, rendered as
    ``error`` and hidden in production; ``public_message`` is always shown.
    """
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, public_message: str = "Something went wrong!", **extra: Any):
        super().__init__(message, **extra)
        self.public_message = public_message

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.public_message, "error": self.message, "code": self.code, **self.extra}
