"""
Shared fixtures: SQLite-backed session factories for both services, an
in-memory stand-in for the cache gateway, and app/client factories.
"""

import fnmatch
import math
from collections import Counter
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from servicecommon.cache import PIPELINE_COMMANDS, CacheGateway
from productservice.clients.auth_client import AuthClient
from productservice.core.config import Settings as ProductSettings
from productservice.db import models as product_models
from productservice.db.session import Base as ProductBase, build_session_factory as product_sessions
from productservice.main import create_app as create_product_app
from productservice.utils.search import normalize_search_text
from userservice.core.config import Settings as UserSettings
from userservice.db import models as user_models  # noqa: F401
from userservice.db.session import Base as UserBase, build_session_factory as user_sessions
from userservice.main import create_app as create_user_app
from userservice.security.tokens import TokenManager

TEST_SECRET = 'test-secret-key-with-at-least-32-characters!'


class MemoryCache(CacheGateway):
    """Dict-backed cache gateway that counts calls."""

    def __init__(self):
        super().__init__(client=None)
        self.store: Dict[str, bytes] = {}
        self.zsets: Dict[str, Dict[str, float]] = {}
        self.ttls: Dict[str, object] = {}
        self.calls = Counter()

    def get(self, key):
        self.calls['get'] += 1
        return self.store.get(key)

    def set(self, key, value, ttl):
        self.calls['set'] += 1
        self.store[key] = value.encode() if isinstance(value, str) else value
        self.ttls[key] = ttl

    def delete(self, *keys):
        self.calls['delete'] += 1
        for key in keys:
            self.store.pop(key, None)
            self.zsets.pop(key, None)

    def delete_by_pattern(self, pattern):
        self.calls['delete_by_pattern'] += 1
        matched = [k for k in list(self.store) + list(self.zsets) if fnmatch.fnmatchcase(k, pattern)]
        for key in matched:
            self.store.pop(key, None)
            self.zsets.pop(key, None)
        return len(matched)

    def atomic_multi_write(self, ops):
        for op in ops:
            if op[0] not in PIPELINE_COMMANDS:
                raise ValueError(f'unsupported pipeline command: {op[0]}')
        self.calls['atomic_multi_write'] += 1
        for command, key, *args in ops:
            if command == 'zadd':
                self.zsets.setdefault(key, {}).update(args[0])
            elif command == 'zrem':
                for member in args:
                    self.zsets.get(key, {}).pop(member, None)
            elif command == 'zremrangebyscore':
                zset = self.zsets.get(key, {})
                low = -math.inf if args[0] == '-inf' else float(args[0])
                high = float(args[1])
                for member, score in list(zset.items()):
                    if low <= score <= high:
                        del zset[member]
            elif command == 'expire':
                self.ttls[key] = args[0]
            elif command == 'set':
                self.store[key] = args[0]
            elif command == 'delete':
                self.store.pop(key, None)
        return True

    def score(self, key, member):
        return self.zsets.get(key, {}).get(member)

    def keys(self, pattern='*'):
        return sorted(k for k in list(self.store) + list(self.zsets) if fnmatch.fnmatchcase(k, pattern))


def _sqlite_engine(base):
    engine = create_engine('sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool)
    base.metadata.create_all(engine)
    return engine


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def user_cache():
    return MemoryCache()


@pytest.fixture
def product_cache():
    return MemoryCache()


@pytest.fixture
def user_session_factory():
    engine = _sqlite_engine(UserBase)
    yield user_sessions(engine)
    engine.dispose()


@pytest.fixture
def product_session_factory():
    engine = _sqlite_engine(ProductBase)
    yield product_sessions(engine)
    engine.dispose()


@pytest.fixture
def user_db(user_session_factory):
    db = user_session_factory()
    yield db
    db.close()


@pytest.fixture
def product_db(product_session_factory):
    db = product_session_factory()
    yield db
    db.close()


@pytest.fixture
def token_manager():
    return TokenManager(TEST_SECRET)


@pytest.fixture
def user_settings():
    return UserSettings(ENV='test', LOG_LEVEL='warning', POSTGRES_DSN='sqlite://', JWT_SECRET=TEST_SECRET)


@pytest.fixture
def product_settings():
    return ProductSettings(ENV='test', LOG_LEVEL='warning', POSTGRES_DSN='sqlite://',
                           USER_SERVICE_BASE='http://testserver')


@pytest.fixture
def user_client(user_settings, user_cache, user_session_factory):
    app = create_user_app(user_settings, cache=user_cache, session_factory=user_session_factory)
    return TestClient(app)


@pytest.fixture
def product_client(product_settings, product_cache, product_session_factory, user_client):
    """Product service wired to the in-process user service."""
    app = create_product_app(
        product_settings,
        cache=product_cache,
        session_factory=product_session_factory,
        auth_client=AuthClient(http_client=user_client),
    )
    return TestClient(app)


@pytest.fixture
def category(product_session_factory):
    with product_session_factory() as db:
        obj = product_models.Category(name='Phones', description='Mobile phones')
        db.add(obj); db.commit(); db.refresh(obj)
        return obj


@pytest.fixture
def make_product(product_session_factory, category):
    def _make(name='Điện thoại Alpha', price=100.0, **kwargs):
        with product_session_factory() as db:
            obj = product_models.Product(
                name=name,
                search_name=normalize_search_text(name),
                price=price,
                category_id=category.id,
                average_rating=kwargs.pop('average_rating', 0.0),
                total_ratings=kwargs.pop('total_ratings', 0),
                **kwargs,
            )
            db.add(obj); db.commit(); db.refresh(obj)
            return obj
    return _make


def register_and_login(client, name='Alice Nguyen', email='alice@example.com', password='secret123'):
    """Register through the user API and return the login payload."""
    resp = client.post('/users/register', json={'name': name, 'email': email, 'password': password})
    assert resp.status_code == 201, resp.text
    resp = client.post('/users/login', json={'email': email, 'password': password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(token):
    return {'Authorization': f'Bearer {token}'}
