from servicecommon.migrations import run_migrations
from userservice.db.session import Base
import userservice.db.models  # noqa

run_migrations(Base.metadata, version_table="alembic_version_user")
