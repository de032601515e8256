# main.py
from typing import Optional

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import sessionmaker

from servicecommon.cache import CacheGateway, build_redis
from servicecommon.http import install_gateway
from servicecommon.logging import configure_logging, get_logger
from productservice.api import products, ratings
from productservice.clients.auth_client import AuthClient
from productservice.core.config import Settings, load_settings
from productservice.db.session import build_engine, build_session_factory
from productservice.version import VERSION


def create_app(settings: Optional[Settings] = None, *, cache: Optional[CacheGateway] = None,
               session_factory: Optional[sessionmaker] = None,
               auth_client: Optional[AuthClient] = None) -> FastAPI:
    """Composition root; run with ``uvicorn productservice.main:create_app --factory``."""
    settings = settings or load_settings()
    configure_logging('product-service', settings.LOG_LEVEL)
    logger = get_logger('productservice.main')

    if session_factory is None:
        session_factory = build_session_factory(build_engine(settings.POSTGRES_DSN, settings.REQUEST_TIMEOUT_SECONDS))
    if cache is None:
        cache = CacheGateway(build_redis(settings.REDIS_URL, settings.REQUEST_TIMEOUT_SECONDS))
    if auth_client is None:
        auth_client = AuthClient(settings.USER_SERVICE_BASE, timeout=settings.REQUEST_TIMEOUT_SECONDS)

    app = FastAPI(title='Product Service', version=VERSION)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.cache = cache
    app.state.auth_client = auth_client

    # Instrument the app BEFORE adding routes or middleware
    Instrumentator().instrument(app).expose(app, include_in_schema=False, endpoint='/metrics', should_gzip=True)
    install_gateway(app)

    @app.get('/health')
    def health(): return {'status': 'ok'}

    @app.get('/v1/_info')
    def info(): return {'service': 'product', 'version': VERSION}

    app.include_router(products.router, prefix='/products', tags=['products'])
    app.include_router(ratings.router, tags=['ratings'])

    logger.info('Product service configured', env=settings.ENV, user_service=settings.USER_SERVICE_BASE)
    return app
