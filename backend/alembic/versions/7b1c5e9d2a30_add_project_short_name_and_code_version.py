"""add_project_short_name_and_code_version

Revision ID: 7b1c5e9d2a30
Revises: 3f9e2a7c1d04
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7b1c5e9d2a30'
down_revision: Union[str, None] = '3f9e2a7c1d04'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('projects', sa.Column('short_name', sa.String(length=255), nullable=True))
    op.add_column('projects', sa.Column('code_version', sa.Text(), nullable=True))
    op.create_index(op.f('ix_projects_short_name'), 'projects', ['short_name'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_projects_short_name'), table_name='projects')
    op.drop_column('projects', 'code_version')
    op.drop_column('projects', 'short_name')
