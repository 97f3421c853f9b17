"""Add service catalog and discovery tables

Revision ID: 001
Revises:
Create Date: 2026-02-10

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Service catalog
    op.create_table(
        'services',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),

        sa.Column('category', sa.String(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('pricing_model', sa.String(), nullable=False, server_default='free'),

        sa.Column('favicon_url', sa.String(), nullable=True),
        sa.Column('og_image_url', sa.String(), nullable=True),

        sa.Column('source', sa.String(), nullable=False, server_default='user'),
        sa.Column('score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_service_slug'),
        sa.UniqueConstraint('url', name='uq_service_url'),
        sa.CheckConstraint(
            "source IN ('user', 'auto', 'developer')",
            name='ck_service_source'
        ),
        sa.CheckConstraint(
            "pricing_model IN ('free', 'freemium', 'paid')",
            name='ck_service_pricing_model'
        ),
    )
    op.create_index('ix_services_slug', 'services', ['slug'])
    op.create_index('ix_services_name', 'services', ['name'])
    op.create_index('ix_services_category', 'services', ['category'])
    op.create_index('ix_services_source', 'services', ['source'])
    op.create_index('ix_services_created_at', 'services', ['created_at'])

    # Configured discovery sources
    op.create_table(
        'discovery_sources',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_crawled', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('url', name='uq_discovery_source_url'),
    )
    op.create_index('ix_discovery_sources_type', 'discovery_sources', ['type'])
    op.create_index('ix_discovery_sources_is_active', 'discovery_sources', ['is_active'])
    op.create_index('ix_discovery_sources_priority', 'discovery_sources', ['priority'])

    # One row per crawl invocation
    op.create_table(
        'crawl_runs',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='running'),

        # Stats
        sa.Column('sources_checked', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('urls_discovered', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('urls_new', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('urls_duplicate', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('services_created', sa.Integer(), nullable=False, server_default='0'),

        sa.Column('error_message', sa.Text(), nullable=True),

        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('running', 'completed', 'failed')",
            name='ck_crawl_run_status'
        ),
    )
    op.create_index('ix_crawl_runs_started_at', 'crawl_runs', ['started_at'])
    op.create_index('ix_crawl_runs_status', 'crawl_runs', ['status'])

    # Every canonical URL the crawler has looked at
    op.create_table(
        'discovery_logs',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('source_id', sa.String(36), nullable=True),
        sa.Column('discovered_url', sa.String(), nullable=False),
        sa.Column('normalized_url', sa.String(), nullable=False),
        sa.Column('domain', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),

        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('service_id', sa.String(36), nullable=True),
        sa.Column('duplicate_of_id', sa.String(36), nullable=True),
        sa.Column('similarity_score', sa.Float(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['source_id'], ['discovery_sources.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['duplicate_of_id'], ['services.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('normalized_url', name='uq_discovery_log_normalized_url'),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'duplicate', 'error')",
            name='ck_discovery_log_status'
        ),
    )
    op.create_index('ix_discovery_logs_source_id', 'discovery_logs', ['source_id'])
    op.create_index('ix_discovery_logs_domain', 'discovery_logs', ['domain'])
    op.create_index('ix_discovery_logs_status', 'discovery_logs', ['status'])
    op.create_index('ix_discovery_logs_created_at', 'discovery_logs', ['created_at'])


def downgrade():
    op.drop_table('discovery_logs')
    op.drop_table('crawl_runs')
    op.drop_table('discovery_sources')
    op.drop_table('services')
