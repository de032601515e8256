from pydantic import BaseModel, EmailStr, Field

from servicecommon.auth import Role


class RegisterPayload(BaseModel):
    name: str = Field(min_length=6, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)

class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)

class UpdateRolePayload(BaseModel):
    role: Role

class ChangePasswordPayload(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=72)

class AuthenticateRequest(BaseModel):
    token: str = ''

class StatusResponse(BaseModel):
    status: str = 'ok'
