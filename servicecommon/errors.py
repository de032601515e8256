"""
Error taxonomy shared by both services.

Repositories and services raise ``ServiceError`` subclasses; the HTTP gateway
turns them into ``{"error": message}`` bodies with the kind's status code.
"""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INTERNAL = "internal"


STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}

DEFAULT_MESSAGES = {
    ErrorKind.NOT_FOUND: "data not found",
    ErrorKind.INVALID_INPUT: "invalid data",
    ErrorKind.UNAUTHENTICATED: "unauthenticated",
    ErrorKind.FORBIDDEN: "permission denied",
    ErrorKind.CONFLICT: "conflict",
    ErrorKind.INTERNAL: "internal server error",
}


class ServiceError(Exception):
    """Base error carrying a kind and a client-facing message."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str | None = None, kind: ErrorKind | None = None):
        if kind is not None:
            self.kind = kind
        self.message = message or DEFAULT_MESSAGES[self.kind]
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class InvalidInputError(ServiceError):
    kind = ErrorKind.INVALID_INPUT


class UnauthenticatedError(ServiceError):
    kind = ErrorKind.UNAUTHENTICATED


class ForbiddenError(ServiceError):
    kind = ErrorKind.FORBIDDEN


class ConflictError(ServiceError):
    kind = ErrorKind.CONFLICT


class InternalError(ServiceError):
    kind = ErrorKind.INTERNAL
