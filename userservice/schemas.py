from pydantic import BaseModel
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from servicecommon.auth import Role


class UserStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class UserRecord(BaseModel):
    """Cached shape of a user row, soft-delete marker included."""
    id: uuid.UUID
    name: str
    email: str
    password_hash: str
    role: Role
    created_at: datetime
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    class Config: from_attributes = True

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class UserSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: Role
    created_at: datetime
    class Config: from_attributes = True


class RegisteredUser(UserSummary):
    pass


class CurrentUser(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    status: UserStatus
    created_at: datetime


class RoleUpdated(BaseModel):
    id: uuid.UUID
    email: str
    role: Role
    updated_at: datetime


class TokenUser(BaseModel):
    id: uuid.UUID
    email: str
    role: Role


class AuthTokens(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'
    expires_in: int
    user: TokenUser


class AuthResult(BaseModel):
    valid: bool
    user_id: Optional[uuid.UUID] = None
    role: Optional[Role] = None


class UserInfo(BaseModel):
    id: uuid.UUID
    name: str
    email: str
