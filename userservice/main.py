# main.py
from typing import Optional

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import sessionmaker

from servicecommon.cache import CacheGateway, build_redis
from servicecommon.http import install_gateway
from servicecommon.logging import configure_logging, get_logger
from userservice.api.v1 import routes_rpc, routes_users
from userservice.core.config import Settings, load_settings
from userservice.db.session import build_engine, build_session_factory
from userservice.security.tokens import TokenManager
from userservice.version import VERSION


def create_app(settings: Optional[Settings] = None, *, cache: Optional[CacheGateway] = None,
               session_factory: Optional[sessionmaker] = None,
               token_manager: Optional[TokenManager] = None) -> FastAPI:
    """Composition root; run with ``uvicorn userservice.main:create_app --factory``."""
    settings = settings or load_settings()
    configure_logging('user-service', settings.LOG_LEVEL)
    logger = get_logger('userservice.main')

    if session_factory is None:
        session_factory = build_session_factory(build_engine(settings.POSTGRES_DSN, settings.REQUEST_TIMEOUT_SECONDS))
    if cache is None:
        cache = CacheGateway(build_redis(settings.REDIS_URL, settings.REQUEST_TIMEOUT_SECONDS))
    if token_manager is None:
        token_manager = TokenManager(settings.JWT_SECRET, issuer=settings.JWT_ISSUER, algorithm=settings.JWT_ALGORITHM)

    app = FastAPI(title='User Service', version=VERSION)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.cache = cache
    app.state.token_manager = token_manager

    # Instrument the app BEFORE adding routes or middleware
    Instrumentator().instrument(app).expose(app, include_in_schema=False, endpoint='/metrics', should_gzip=True)
    install_gateway(app)

    @app.get('/health')
    def health(): return {'status': 'ok'}

    @app.get('/v1/_info')
    def info(): return {'service': 'user', 'version': VERSION}

    app.include_router(routes_users.router, prefix='/users', tags=['users'])
    app.include_router(routes_rpc.router, prefix='/rpc/user.UserService', tags=['rpc'])

    logger.info('User service configured', env=settings.ENV, routes=len(app.routes))
    return app
