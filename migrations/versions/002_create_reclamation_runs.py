"""Create reclamation_runs table.

One row per reclamation run (scheduled, manual or cli) with its counts,
for the admin run history.

Revision ID: 002_create_reclamation_runs
Revises: 001_create_reports_tables
Create Date: 2026-10-05
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_create_reclamation_runs'
down_revision: Union[str, Sequence[str], None] = '001_create_reports_tables'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create reclamation_runs table."""
    op.create_table(
        'reclamation_runs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('trigger', sa.String(length=16), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('elapsed_ms', sa.Integer(), nullable=False),
        sa.Column('soft_deleted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hard_deleted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('errors', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('batches', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cap_reached', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reclamation_runs_started_at', 'reclamation_runs', ['started_at'], unique=False)

    print("  Created reclamation_runs table")


def downgrade() -> None:
    """Drop reclamation_runs table."""
    op.drop_index('ix_reclamation_runs_started_at', table_name='reclamation_runs')
    op.drop_table('reclamation_runs')

    print("  Dropped reclamation_runs table")
