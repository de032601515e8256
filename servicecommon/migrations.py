"""
Alembic environment shared by both services. Each service's ``env.py`` only
names its metadata and its own version table.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import MetaData, engine_from_config, pool


def run_migrations_offline(metadata: MetaData, version_table: str, url: str) -> None:
    context.configure(
        url=url,
        target_metadata=metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        version_table=version_table,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(metadata: MetaData, version_table: str, url: str) -> None:
    connectable = engine_from_config(
        {"sqlalchemy.url": url},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=metadata,
            version_table=version_table,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


def run_migrations(metadata: MetaData, version_table: str) -> None:
    config = context.config
    if config.config_file_name is not None:
        fileConfig(config.config_file_name)
    url = os.getenv("POSTGRES_DSN")
    if context.is_offline_mode():
        run_migrations_offline(metadata, version_table, url)
    else:
        run_migrations_online(metadata, version_table, url)
