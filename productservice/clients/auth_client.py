"""
Client for the user service's internal RPC surface.

Every transport failure, non-200 answer or undecodable body is reported as
``UnauthenticatedError``: an unreachable authenticator never grants access.
"""

from typing import Optional
import uuid

import httpx
from pydantic import BaseModel, ValidationError

from servicecommon.auth import AUTH_FAILED, Role
from servicecommon.errors import UnauthenticatedError
from servicecommon.logging import get_logger

RPC_PREFIX = '/rpc/user.UserService'


class RemoteAuth(BaseModel):
    valid: bool
    user_id: Optional[uuid.UUID] = None
    role: Optional[Role] = None


class RemoteUser(BaseModel):
    id: uuid.UUID
    name: str
    email: str


class AuthClient:
    def __init__(self, base_url: str = '', timeout: float = 5.0, http_client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip('/')
        self._client = http_client or httpx.Client(base_url=self.base_url, timeout=timeout)
        self.logger = get_logger('productservice.clients.auth')

    def _call(self, method: str, **kwargs) -> httpx.Response:
        try:
            resp = self._client.post(f'{RPC_PREFIX}/{method}', **kwargs)
        except httpx.HTTPError as e:
            self.logger.warning('Auth service unreachable', method=method, error=str(e))
            raise UnauthenticatedError(AUTH_FAILED)
        if resp.status_code != 200:
            self.logger.info('Auth service rejected call', method=method, status=resp.status_code)
            raise UnauthenticatedError(AUTH_FAILED)
        return resp

    def authenticate(self, token: str) -> RemoteAuth:
        resp = self._call('Authenticate', json={'token': token})
        try:
            return RemoteAuth.model_validate_json(resp.content)
        except ValidationError:
            self.logger.warning('Undecodable Authenticate response')
            raise UnauthenticatedError(AUTH_FAILED)

    def get_current_user_info(self, token: str) -> RemoteUser:
        resp = self._call('GetCurrentUserInfo', headers={'Authorization': f'Bearer {token}'})
        try:
            return RemoteUser.model_validate_json(resp.content)
        except ValidationError:
            self.logger.warning('Undecodable GetCurrentUserInfo response')
            raise UnauthenticatedError(AUTH_FAILED)

    def close(self) -> None:
        self._client.close()
