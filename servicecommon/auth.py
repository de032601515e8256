from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from servicecommon.errors import UnauthenticatedError

TOKEN_INVALID = "token is missing or malformed"
AUTH_FAILED = "authentication failed"
TOKEN_EXPIRED = "token has expired"
PERMISSION_DENIED = "you do not have permission to perform this action"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """Identity of the authenticated caller, passed explicitly to services."""

    user_id: UUID
    role: Role
    token: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def parse_bearer(header: Optional[str]) -> str:
    """Extract the token from ``Authorization: Bearer <token>``."""
    if not header:
        raise UnauthenticatedError(TOKEN_INVALID)
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise UnauthenticatedError(TOKEN_INVALID)
    return parts[1]
