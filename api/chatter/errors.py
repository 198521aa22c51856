"""Error taxonomy raised by the services and rendered by the API."""

from __future__ import annotations

from fastapi import status


class ServiceError(Exception):
    """Base class for failures a service surfaces to its caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(ServiceError):
    """User, post, message or notification is absent."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Forbidden(ServiceError):
    """Relationship gate failure, or the caller does not own the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class InvalidArgument(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid argument"


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class Internal(ServiceError):
    """Storage failure."""
