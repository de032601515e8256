from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from typing import Optional

from servicecommon.auth import AUTH_FAILED, Principal, parse_bearer
from servicecommon.cache import CacheGateway
from servicecommon.errors import UnauthenticatedError
from productservice.clients.auth_client import AuthClient
from productservice.core.config import Settings
from productservice.repositories.products import ProductRepository
from productservice.repositories.ratings import RatingRepository
from productservice.services.products import ProductService
from productservice.services.ratings import RatingService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request):
    db = request.app.state.session_factory()
    try: yield db
    finally: db.close()


def get_cache(request: Request) -> CacheGateway:
    return request.app.state.cache


def get_auth_client(request: Request) -> AuthClient:
    return request.app.state.auth_client


def get_product_service(db: Session = Depends(get_db), cache: CacheGateway = Depends(get_cache),
                        settings: Settings = Depends(get_settings)) -> ProductService:
    return ProductService(ProductRepository(db, cache, ttl=settings.CACHE_TTL_SECONDS))


def get_rating_service(db: Session = Depends(get_db), cache: CacheGateway = Depends(get_cache),
                       settings: Settings = Depends(get_settings),
                       auth: AuthClient = Depends(get_auth_client)) -> RatingService:
    return RatingService(RatingRepository(db, cache, ttl=settings.CACHE_TTL_SECONDS), auth)


def _authenticate(authorization: Optional[str], auth: AuthClient) -> Principal:
    token = parse_bearer(authorization)
    result = auth.authenticate(token)
    if not result.valid or result.user_id is None or result.role is None:
        raise UnauthenticatedError(AUTH_FAILED)
    return Principal(user_id=result.user_id, role=result.role, token=token)


def get_principal(authorization: Optional[str] = Header(default=None),
                  auth: AuthClient = Depends(get_auth_client)) -> Principal:
    return _authenticate(authorization, auth)


def optional_principal(authorization: Optional[str] = Header(default=None),
                       auth: AuthClient = Depends(get_auth_client)) -> Optional[Principal]:
    """Like ``get_principal`` but anonymous on any failure."""
    if not authorization:
        return None
    try:
        return _authenticate(authorization, auth)
    except UnauthenticatedError:
        return None
