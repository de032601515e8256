"""
Login, refresh-token rotation, logout and token authentication.
"""

from servicecommon.errors import ForbiddenError, NotFoundError, UnauthenticatedError
from servicecommon.logging import get_logger
from userservice.cache.refresh_tokens import RefreshTokenStore
from userservice.repositories.users import UserRepository
from userservice.schemas import AuthResult, AuthTokens, TokenUser, UserRecord
from userservice.security.passwords import verify_password
from userservice.security.tokens import Claims, ExpiredTokenError, TokenError, TokenKind, TokenManager
from userservice.services.users import normalize_email

ACCOUNT_LOCKED = 'account is locked'
PASSWORD_MISMATCH = 'password does not match'
REFRESH_INVALID = 'refresh token is invalid or expired'
REFRESH_EXPIRED = 'refresh token has expired'


class AuthService:
    def __init__(self, users: UserRepository, tokens: TokenManager, refresh_tokens: RefreshTokenStore,
                 access_ttl: int, refresh_ttl: int):
        self.users = users
        self.tokens = tokens
        self.refresh_tokens = refresh_tokens
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.logger = get_logger('userservice.services.auth')

    def _issue_pair(self, user: UserRecord):
        access = self.tokens.issue(user, TokenKind.ACCESS, self.access_ttl)
        refresh = self.tokens.issue(user, TokenKind.REFRESH, self.refresh_ttl)
        return access, refresh

    def _response(self, user: UserRecord, access, refresh) -> AuthTokens:
        return AuthTokens(
            access_token=access.token,
            refresh_token=refresh.token,
            expires_in=access.expires_in,
            user=TokenUser(id=user.id, email=user.email, role=user.role),
        )

    def login(self, email: str, password: str) -> AuthTokens:
        user = self.users.find_by_email(normalize_email(email), include_deleted=True)
        if user.is_deleted:
            raise ForbiddenError(ACCOUNT_LOCKED)
        if not verify_password(password, user.password_hash):
            raise ForbiddenError(PASSWORD_MISMATCH)

        access, refresh = self._issue_pair(user)
        if not self.refresh_tokens.save(user.id, refresh.token, refresh.expires_at):
            self.logger.error('Failed to persist refresh token', user_id=str(user.id))
        self.logger.info('User logged in', user_id=str(user.id))
        return self._response(user, access, refresh)

    def _refresh_claims(self, token: str) -> Claims:
        try:
            claims = self.tokens.validate(token)
        except ExpiredTokenError:
            raise UnauthenticatedError(REFRESH_EXPIRED)
        except TokenError:
            raise UnauthenticatedError(REFRESH_INVALID)
        if claims.kind != TokenKind.REFRESH:
            raise UnauthenticatedError(REFRESH_INVALID)
        return claims

    def refresh(self, refresh_token: str) -> AuthTokens:
        claims = self._refresh_claims(refresh_token)
        if not self.refresh_tokens.is_active(claims.user_id, refresh_token):
            raise UnauthenticatedError(REFRESH_INVALID)
        try:
            user = self.users.find_by_id(claims.user_id)
        except NotFoundError:
            raise UnauthenticatedError(REFRESH_INVALID)

        access, refresh = self._issue_pair(user)
        if not self.refresh_tokens.rotate(user.id, refresh_token, refresh.token, refresh.expires_at):
            raise UnauthenticatedError(REFRESH_INVALID)
        return self._response(user, access, refresh)

    def logout(self, refresh_token: str) -> None:
        claims = self._refresh_claims(refresh_token)
        self.refresh_tokens.revoke(claims.user_id, refresh_token)
        self.logger.info('User logged out', user_id=str(claims.user_id))

    def validate_access(self, token: str) -> Claims:
        """Validate an access token locally; raises ``TokenError`` on failure."""
        claims = self.tokens.validate(token)
        if claims.kind != TokenKind.ACCESS:
            raise TokenError('not an access token')
        return claims

    def authenticate(self, token: str) -> AuthResult:
        try:
            claims = self.validate_access(token)
        except TokenError as e:
            self.logger.debug('Token rejected', reason=str(e))
            return AuthResult(valid=False)
        try:
            user = self.users.find_by_id(claims.user_id)
        except NotFoundError:
            return AuthResult(valid=False)
        return AuthResult(valid=True, user_id=user.id, role=user.role)
