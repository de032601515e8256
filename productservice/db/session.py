from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine


class Base(DeclarativeBase): pass


def build_engine(dsn: str, timeout_seconds: float) -> Engine:
    connect_args = {}
    if dsn.startswith('postgresql'):
        # statement_timeout is in milliseconds
        connect_args['options'] = f'-c statement_timeout={int(timeout_seconds * 1000)}'
        connect_args['connect_timeout'] = max(1, int(timeout_seconds))
    return create_engine(dsn, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
