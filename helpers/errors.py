# helpers/errors.py
from typing import Optional


class AppError(Exception):
    """Base for every error a route is allowed to turn into a JSON response."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(AppError):
    status_code = 400


class NotAuthenticated(AppError):
    status_code = 401

    def __init__(self, message: str = "No token found for this tenant"):
        super().__init__(message)


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class Expired(AppError):
    status_code = 410


class UpstreamError(AppError):
    """GHL answered with a non-2xx status (or could not be reached)."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message, status_code=status or 500)
        self.status = status


class ProviderError(AppError):
    status_code = 500

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider} generation failed: {message}")
        self.provider = provider
