"""
Internal RPC surface consumed by the product service.

``Authenticate`` is public and answers ``valid=false`` for any token it
cannot vouch for; ``GetCurrentUserInfo`` requires the caller's bearer token
to be forwarded unchanged.
"""

from fastapi import APIRouter, Depends

from servicecommon.auth import Principal
from userservice.api.deps import get_auth_service, get_principal, get_user_repository
from userservice.api.v1.schemas import AuthenticateRequest
from userservice.repositories.users import UserRepository
from userservice.schemas import AuthResult, UserInfo
from userservice.services.auth import AuthService

router = APIRouter()  # main.py mounts at /rpc/user.UserService


@router.post('/Authenticate', response_model=AuthResult)
def authenticate(payload: AuthenticateRequest, auth: AuthService = Depends(get_auth_service)) -> AuthResult:
    return auth.authenticate(payload.token)


@router.post('/GetCurrentUserInfo', response_model=UserInfo)
def get_current_user_info(principal: Principal = Depends(get_principal),
                          users: UserRepository = Depends(get_user_repository)) -> UserInfo:
    user = users.find_by_id(principal.user_id)
    return UserInfo(id=user.id, name=user.name, email=user.email)
