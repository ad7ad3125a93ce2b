# aravalli/errors.py
"""Error kinds raised by the services and mapped to HTTP statuses in main."""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class StorageError(AppError):
    status_code = 500


class ExternalServiceError(AppError):
    """Gemini call failed or returned something unusable."""
    status_code = 502
