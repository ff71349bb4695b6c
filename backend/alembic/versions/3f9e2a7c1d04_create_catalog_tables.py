"""create_catalog_tables

Revision ID: 3f9e2a7c1d04
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9e2a7c1d04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

visibility_enum = sa.Enum('PRIVATE', 'PUBLIC', 'ORGANIZATION', name='resourcevisibility')
dataset_type_enum = sa.Enum('RAW', 'PATH', 'QUERY', name='datasettype')
value_type_enum = sa.Enum('NUMBER', 'STRING', 'BLOB', name='valuetype')
audit_action_enum = sa.Enum('CREATE', 'UPDATE', 'DELETE', name='auditaction')


def _catalog_columns():
    """Columns every top-level resource carries."""
    return [
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('owner', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('visibility', visibility_enum, nullable=False),
        sa.Column('workspace', sa.String(length=255), nullable=False),
        sa.Column('date_created', sa.BigInteger(), nullable=False),
        sa.Column('date_updated', sa.BigInteger(), nullable=False),
        sa.Column('deleted', sa.Boolean(), nullable=False),
    ]


def _child_columns():
    return [
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('owner', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date_created', sa.BigInteger(), nullable=False),
        sa.Column('date_updated', sa.BigInteger(), nullable=False),
        sa.Column('deleted', sa.Boolean(), nullable=False),
    ]


def _resource_indexes(table: str) -> None:
    for column in ('owner', 'name', 'visibility', 'workspace', 'date_updated', 'deleted'):
        op.create_index(f'ix_{table}_{column}', table, [column])


def upgrade() -> None:
    # Top-level resources
    op.create_table('projects',
        *_catalog_columns(),
        sa.Column('readme_text', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    _resource_indexes('projects')

    op.create_table('datasets',
        *_catalog_columns(),
        sa.Column('dataset_type', dataset_type_enum, nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    _resource_indexes('datasets')

    # Children
    op.create_table('experiments',
        *_child_columns(),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_experiments_project_id', 'experiments', ['project_id'])
    op.create_index('ix_experiments_owner', 'experiments', ['owner'])
    op.create_index('ix_experiments_date_updated', 'experiments', ['date_updated'])
    op.create_index('ix_experiments_deleted', 'experiments', ['deleted'])

    op.create_table('experiment_runs',
        *_child_columns(),
        sa.Column('project_id', sa.String(length=36), nullable=False),
        sa.Column('experiment_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['experiment_id'], ['experiments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_experiment_runs_project_id', 'experiment_runs', ['project_id'])
    op.create_index('ix_experiment_runs_experiment_id', 'experiment_runs', ['experiment_id'])
    op.create_index('ix_experiment_runs_owner', 'experiment_runs', ['owner'])
    op.create_index('ix_experiment_runs_date_updated', 'experiment_runs', ['date_updated'])
    op.create_index('ix_experiment_runs_deleted', 'experiment_runs', ['deleted'])

    op.create_table('dataset_versions',
        *_child_columns(),
        sa.Column('dataset_id', sa.String(length=36), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['dataset_id'], ['datasets.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_dataset_versions_dataset_id', 'dataset_versions', ['dataset_id'])
    op.create_index('ix_dataset_versions_owner', 'dataset_versions', ['owner'])
    op.create_index('ix_dataset_versions_date_updated', 'dataset_versions', ['date_updated'])
    op.create_index('ix_dataset_versions_deleted', 'dataset_versions', ['deleted'])

    # Generic tags / attributes keyed by (resource_type, resource_id)
    op.create_table('resource_tags',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.String(length=36), nullable=False),
        sa.Column('tag', sa.String(length=255), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_type', 'resource_id', 'tag', name='uq_resource_tag')
    )
    op.create_index('ix_resource_tags_lookup', 'resource_tags', ['resource_type', 'resource_id'])
    op.create_index('ix_resource_tags_by_tag', 'resource_tags', ['resource_type', 'tag'])

    op.create_table('resource_attributes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.String(length=36), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value_type', value_type_enum, nullable=False),
        sa.Column('value_number', sa.Float(), nullable=True),
        sa.Column('value_string', sa.Text(), nullable=True),
        sa.Column('value_blob', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_type', 'resource_id', 'key', name='uq_resource_attribute')
    )
    op.create_index('ix_resource_attributes_lookup', 'resource_attributes', ['resource_type', 'resource_id'])
    op.create_index('ix_resource_attributes_by_key', 'resource_attributes', ['resource_type', 'key'])

    # Collaborator grants and audit trail
    op.create_table('access_grants',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.String(length=36), nullable=False),
        sa.Column('principal', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_type', 'resource_id', 'principal', 'action', name='uq_access_grant')
    )
    op.create_index('ix_access_grants_principal', 'access_grants', ['principal', 'resource_type', 'action'])

    op.create_table('audit_logs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('action', audit_action_enum, nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.String(length=36), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_resource_type', 'audit_logs', ['resource_type'])
    op.create_index('ix_audit_logs_resource_id', 'audit_logs', ['resource_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('access_grants')
    op.drop_table('resource_attributes')
    op.drop_table('resource_tags')
    op.drop_table('dataset_versions')
    op.drop_table('experiment_runs')
    op.drop_table('experiments')
    op.drop_table('datasets')
    op.drop_table('projects')

    bind = op.get_bind()
    for enum in (audit_action_enum, value_type_enum, dataset_type_enum, visibility_enum):
        enum.drop(bind, checkfirst=True)
