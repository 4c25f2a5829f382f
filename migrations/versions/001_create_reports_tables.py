"""Create reports and report_lifecycle_events tables.

Reports carry their own soft-delete state (is_deleted, deleted_at,
expiration_reason). Lifecycle events are the audit trail and have no
foreign key to reports so they survive hard deletion.

Revision ID: 001_create_reports_tables
Revises:
Create Date: 2026-09-28
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_create_reports_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create reports and report_lifecycle_events."""
    op.create_table(
        'reports',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.String(length=128), nullable=False),
        sa.Column('branch_id', sa.String(length=128), nullable=True),
        sa.Column('stage', sa.String(length=16), nullable=False, server_default='stage1'),
        sa.Column('stage1_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('stage2_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expiration_reason', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_edited', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('content', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "(is_deleted AND deleted_at IS NOT NULL) OR (NOT is_deleted AND deleted_at IS NULL)",
            name='ck_reports_deleted_at_matches_flag',
        ),
    )
    op.create_index('ix_reports_owner_id', 'reports', ['owner_id'], unique=False)
    op.create_index('ix_reports_branch_id', 'reports', ['branch_id'], unique=False)
    # Reclamation range queries
    op.create_index('ix_reports_deleted', 'reports', ['is_deleted', 'deleted_at'], unique=False)
    op.create_index('ix_reports_stale', 'reports', ['is_deleted', 'stage', 'last_edited'], unique=False)

    op.create_table(
        'report_lifecycle_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('report_id', sa.UUID(), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('initiated_by', sa.String(length=160), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=True),
        sa.Column('event_metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_report_lifecycle_events_report_id', 'report_lifecycle_events', ['report_id'], unique=False)
    op.create_index('ix_report_lifecycle_events_occurred_at', 'report_lifecycle_events', ['occurred_at'], unique=False)

    print("  Created reports and report_lifecycle_events tables with indexes")


def downgrade() -> None:
    """Drop reports and report_lifecycle_events."""
    op.drop_index('ix_report_lifecycle_events_occurred_at', table_name='report_lifecycle_events')
    op.drop_index('ix_report_lifecycle_events_report_id', table_name='report_lifecycle_events')
    op.drop_table('report_lifecycle_events')

    op.drop_index('ix_reports_stale', table_name='reports')
    op.drop_index('ix_reports_deleted', table_name='reports')
    op.drop_index('ix_reports_branch_id', table_name='reports')
    op.drop_index('ix_reports_owner_id', table_name='reports')
    op.drop_table('reports')

    print("  Dropped reports and report_lifecycle_events tables")
