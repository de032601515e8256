"""
Issuing and validating signed identity tokens.

Access and refresh tokens carry the same claims shape and differ only by
``type`` and lifetime. Validation accepts the HMAC family only, so a token
re-signed with ``none`` or an asymmetric algorithm is rejected outright.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Union
import uuid

import jwt

from servicecommon.auth import Role

HMAC_ALGORITHMS = ['HS256', 'HS384', 'HS512']
REQUIRED_CLAIMS = ['exp', 'iat', 'nbf', 'sub', 'jti']


class TokenKind(str, Enum):
    ACCESS = 'access'
    REFRESH = 'refresh'


class TokenError(Exception):
    pass


class InvalidTokenError(TokenError):
    def __init__(self, message: str = 'invalid token'):
        super().__init__(message)


class ExpiredTokenError(TokenError):
    def __init__(self, message: str = 'token has expired'):
        super().__init__(message)


@dataclass(frozen=True)
class Claims:
    user_id: uuid.UUID
    email: str
    role: Role
    kind: TokenKind
    jti: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    issuer: str


@dataclass(frozen=True)
class IssuedToken:
    token: str
    jti: str
    expires_at: datetime
    expires_in: int


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _from_ts(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TokenManager:
    def __init__(self, secret: str, issuer: str = 'user-service', algorithm: str = 'HS256',
                 clock: Callable[[], datetime] = _utc_now):
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f'unsupported signing algorithm: {algorithm}')
        self._secret = secret
        self.issuer = issuer
        self.algorithm = algorithm
        self._clock = clock

    def issue(self, user, kind: TokenKind, ttl: Union[int, timedelta]) -> IssuedToken:
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=ttl)
        now = self._clock()
        expires_at = now + ttl
        jti = str(uuid.uuid4())
        payload: Dict[str, Any] = {
            'user_id': str(user.id),
            'email': user.email,
            'role': Role(user.role).value,
            'type': TokenKind(kind).value,
            'jti': jti,
            'iat': now,
            'nbf': now,
            'exp': expires_at,
            'iss': self.issuer,
            'sub': str(user.id),
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        return IssuedToken(token=token, jti=jti, expires_at=expires_at,
                           expires_in=int(ttl.total_seconds()))

    def validate(self, token: str) -> Claims:
        if not token:
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=HMAC_ALGORITHMS,
                issuer=self.issuer,
                options={'require': REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.PyJWTError:
            raise InvalidTokenError()

        try:
            return Claims(
                user_id=uuid.UUID(payload['user_id']),
                email=payload.get('email', ''),
                role=Role(payload['role']),
                kind=TokenKind(payload.get('type', TokenKind.ACCESS.value)),
                jti=payload['jti'],
                issued_at=_from_ts(payload['iat']),
                not_before=_from_ts(payload['nbf']),
                expires_at=_from_ts(payload['exp']),
                issuer=payload['iss'],
            )
        except (KeyError, ValueError, TypeError):
            raise InvalidTokenError()
