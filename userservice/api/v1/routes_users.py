from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Path, Query, status

from servicecommon.auth import Principal, Role
from servicecommon.pagination import Page
from userservice.api.deps import get_auth_service, get_principal, get_user_service, require_role
from userservice.api.v1.schemas import (
    ChangePasswordPayload,
    LoginPayload,
    RefreshRequest,
    RegisterPayload,
    StatusResponse,
    UpdateRolePayload,
)
from userservice.schemas import AuthTokens, CurrentUser, RegisteredUser, RoleUpdated, UserSummary
from userservice.services.auth import AuthService
from userservice.services.users import UserService

router = APIRouter()  # main.py mounts at /users


@router.post('/login', response_model=AuthTokens)
def login(payload: LoginPayload, auth: AuthService = Depends(get_auth_service)) -> AuthTokens:
    return auth.login(str(payload.email), payload.password)


@router.post('/register', response_model=RegisteredUser, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterPayload, users: UserService = Depends(get_user_service)) -> RegisteredUser:
    return users.register(payload.name, str(payload.email), payload.password)


@router.post('/refresh', response_model=AuthTokens)
def refresh_token(payload: RefreshRequest, auth: AuthService = Depends(get_auth_service)) -> AuthTokens:
    return auth.refresh(payload.refresh_token)


@router.post('/logout', response_model=StatusResponse)
def logout(payload: RefreshRequest, auth: AuthService = Depends(get_auth_service)) -> StatusResponse:
    auth.logout(payload.refresh_token)
    return StatusResponse()


@router.get('/me', response_model=CurrentUser)
def me(principal: Principal = Depends(get_principal), users: UserService = Depends(get_user_service)):
    return users.get_current_user(principal.user_id)


@router.put('/me/password', response_model=StatusResponse)
def change_password(payload: ChangePasswordPayload, principal: Principal = Depends(get_principal),
                    users: UserService = Depends(get_user_service)) -> StatusResponse:
    users.change_password(principal, payload.current_password, payload.new_password)
    return StatusResponse()


@router.get('/list', response_model=Page[UserSummary])
def list_users(page: Optional[int] = Query(default=1), limit: Optional[int] = Query(default=10),
               search: str = Query(default=''), role: Optional[Role] = Query(default=None),
               _: Principal = Depends(require_role(Role.ADMIN)),
               users: UserService = Depends(get_user_service)):
    return users.list_users(page, limit, search, role)


@router.patch('/{userId}/role', response_model=RoleUpdated)
def update_role(payload: UpdateRolePayload, user_id: uuid.UUID = Path(alias='userId'),
                principal: Principal = Depends(require_role(Role.ADMIN)),
                users: UserService = Depends(get_user_service)):
    return users.update_role(principal, user_id, payload.role)


@router.delete('/{userId}', response_model=StatusResponse)
def delete_user(user_id: uuid.UUID = Path(alias='userId'),
                principal: Principal = Depends(require_role(Role.ADMIN)),
                users: UserService = Depends(get_user_service)) -> StatusResponse:
    users.delete_user(principal, user_id)
    return StatusResponse()
