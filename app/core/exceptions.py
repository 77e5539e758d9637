"""Application error taxonomy.

Repositories and services raise these; ``app.main`` turns them into
``{"message": ...}`` JSON responses with the matching status code.
"""

from fastapi import status


class AppError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing or invalid fields, bad enum values, disallowed words."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request."


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated. Log in to continue."


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action."


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found."


class ConflictError(AppError):
    """Uniqueness violation, whether caught by a pre-check or by the database."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists."


class InternalError(AppError):
    """Storage or blob-store failure. The message is safe to show to clients."""


def validation_message(errors) -> str:
    """Flatten the first pydantic error into ``"field: message"``."""
    if not errors:
        return ValidationError.default_message
    error = errors[0]
    message = error.get("msg", ValidationError.default_message).removeprefix("Value error, ")
    field = ".".join(
        str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "__root__")
    )
    return f"{field}: {message}" if field else message
