from __future__ import annotations


class ValidationError(ValueError):
    """A write rejected locally before any network call."""


class IdentityRequiredError(RuntimeError):
    """No author name or guest session is resolved for the current actor."""


class ApiError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ApiError, LookupError):
    pass


class ForbiddenError(ApiError, PermissionError):
    pass
