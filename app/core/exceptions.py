"""HTTP-facing application errors.

Everything raised from a route or dependency that should turn into a
non-200 response is an ``AppError``. Messages are fixed, caller-safe strings;
upstream error text never goes into ``detail``.
"""

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail, headers=headers)


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request body"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthenticated"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class TooManyRequestsError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests. Please wait a moment before trying again."


class AllProvidersFailedError(AppError):
    """Every provider in the failover chain failed.

    ``failures`` keeps the ordered ``(provider, reason)`` pairs for logging only.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "All AI providers failed. Please try again later."

    def __init__(self, failures: list[tuple[str, str]]):
        super().__init__()
        self.failures = failures
