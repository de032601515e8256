from servicecommon.migrations import run_migrations
from productservice.db.session import Base
import productservice.db.models  # noqa

run_migrations(Base.metadata, version_table="alembic_version_product")
