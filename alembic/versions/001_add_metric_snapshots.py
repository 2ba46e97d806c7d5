"""Add metric snapshots archive

Revision ID: 001_add_metric_snapshots
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_add_metric_snapshots'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Append-only store for computed metrics
    op.create_table(
        'metric_snapshots',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('metric_type', sa.String(100), nullable=False),
        sa.Column('metric_date', sa.Date, nullable=False),
        sa.Column('metric_value', sa.Float, nullable=False),
        sa.Column('metadata', sa.JSON),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_index(
        'ix_metric_snapshots_type_date',
        'metric_snapshots',
        ['metric_type', 'metric_date']
    )


def downgrade() -> None:
    op.drop_index('ix_metric_snapshots_type_date', table_name='metric_snapshots')
    op.drop_table('metric_snapshots')
