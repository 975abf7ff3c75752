# backend/utils/errors.py
from typing import Any, List, Optional


# Base class of domain errors; rendered as {"error", "code", "details"} by main.py
class AppError(Exception):
    status_code = 400
    code = "APP_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


# Request is well formed but current state does not allow it (stock, order status)
class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
