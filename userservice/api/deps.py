from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from typing import Optional

from servicecommon.auth import AUTH_FAILED, PERMISSION_DENIED, TOKEN_EXPIRED, Principal, Role, parse_bearer
from servicecommon.cache import CacheGateway
from servicecommon.errors import ForbiddenError, UnauthenticatedError
from userservice.cache.refresh_tokens import RefreshTokenStore
from userservice.core.config import Settings
from userservice.repositories.users import UserRepository
from userservice.security.tokens import ExpiredTokenError, TokenError
from userservice.services.auth import AuthService
from userservice.services.users import UserService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request):
    db = request.app.state.session_factory()
    try: yield db
    finally: db.close()


def get_cache(request: Request) -> CacheGateway:
    return request.app.state.cache


def get_user_repository(db: Session = Depends(get_db), cache: CacheGateway = Depends(get_cache),
                        settings: Settings = Depends(get_settings)) -> UserRepository:
    return UserRepository(db, cache, ttl=settings.USER_CACHE_TTL_SECONDS, list_ttl=settings.CACHE_TTL_SECONDS)


def get_user_service(users: UserRepository = Depends(get_user_repository)) -> UserService:
    return UserService(users)


def get_auth_service(request: Request, users: UserRepository = Depends(get_user_repository),
                     settings: Settings = Depends(get_settings)) -> AuthService:
    return AuthService(
        users,
        request.app.state.token_manager,
        RefreshTokenStore(request.app.state.cache),
        access_ttl=settings.ACCESS_TOKEN_EXPIRES_SECONDS,
        refresh_ttl=settings.REFRESH_TOKEN_EXPIRES_SECONDS,
    )


def get_principal(authorization: Optional[str] = Header(default=None),
                  auth: AuthService = Depends(get_auth_service)) -> Principal:
    token = parse_bearer(authorization)
    try:
        claims = auth.validate_access(token)
    except ExpiredTokenError:
        raise UnauthenticatedError(TOKEN_EXPIRED)
    except TokenError:
        raise UnauthenticatedError(AUTH_FAILED)
    return Principal(user_id=claims.user_id, role=claims.role, token=token, email=claims.email)


def require_role(*roles: Role):
    def _checker(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise ForbiddenError(PERMISSION_DENIED)
        return principal
    return _checker
