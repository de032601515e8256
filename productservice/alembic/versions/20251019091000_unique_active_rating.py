from alembic import op
import sqlalchemy as sa

revision = '20251019091000'
down_revision = '20251019090500'

def upgrade():
    op.create_index(
        'uq_ratings_user_product_active', 'ratings', ['user_id', 'product_id'],
        unique=True, postgresql_where=sa.text('deleted_at IS NULL'),
    )

def downgrade():
    op.drop_index('uq_ratings_user_product_active', table_name='ratings')
