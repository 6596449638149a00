"""Submissions table

Revision ID: 0001
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'submissions',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('level', sa.String(16), nullable=False),
        sa.Column('research_type', sa.String(32), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('student_id', sa.String(64), nullable=False),
        sa.Column('adviser', sa.String(255), nullable=False, server_default=''),
        sa.Column('course', sa.String(255), nullable=False, server_default=''),
        sa.Column('graduation_month', sa.String(32), nullable=False, server_default=''),
        sa.Column('graduation_year', sa.String(8), nullable=False, server_default=''),
        sa.Column('research_title', sa.Text(), nullable=False),
        # NULL unless undergrad with at least one complete member
        sa.Column('group_members', sa.JSON(), nullable=True),
        sa.Column('zip_file', sa.Text(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='Submitted'),
        sa.Column('is_exported', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('exported_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('export_link', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_submissions_level_status', 'submissions', ['level', 'status'])
    op.create_index('ix_submissions_course', 'submissions', ['course'])
    op.create_index('ix_submissions_submitted_at', 'submissions', ['submitted_at'])


def downgrade() -> None:
    op.drop_index('ix_submissions_submitted_at', table_name='submissions')
    op.drop_index('ix_submissions_course', table_name='submissions')
    op.drop_index('ix_submissions_level_status', table_name='submissions')
    op.drop_table('submissions')
