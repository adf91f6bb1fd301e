from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and a stable error code.

    Services raise these; ``main.create_app`` renders them as
    ``{"success": false, "error": <code>, "message": <message>}``.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid data"


class AuthenticationError(AppError):
    status_code = 401
    code = "NOT_AUTHENTICATED"
    default_message = "Authentication required"


class AuthorizationError(AppError):
    status_code = 403
    code = "NOT_AUTHORIZED"
    default_message = "Access denied"


ForbiddenError = AuthorizationError


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class InvalidStateError(AppError):
    status_code = 400
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state"


class DeadlineExceededError(InvalidStateError):
    code = "DEADLINE_EXCEEDED"
    default_message = "The application deadline has passed"


class InternalError(AppError):
    pass
