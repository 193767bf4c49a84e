"""initial_buffer_schema

Revision ID: 4b1e2c9d7a10
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4b1e2c9d7a10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the buffer schema.

    Tables:
    1. crawl_items - Fetched content, keyed by a hash of the URL
    2. diagnostic_logs - Append-only event log
    3. app_state - Key/value scalars that survive restarts
    """

    # ================================
    # crawl_items
    # ================================
    op.create_table(
        'crawl_items',
        sa.Column('id', sa.String(length=32), nullable=False, comment='Hash of the canonical URL'),
        sa.Column('source', sa.String(length=100), nullable=False, comment='Human-readable source label (e.g. r/memes, Google News)'),
        sa.Column('category', sa.String(length=50), nullable=False, comment='meme, joke, news, video, gossip or free text'),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('url', sa.String(length=2000), nullable=False, comment='Canonical content URL'),
        sa.Column('thumbnail_url', sa.String(length=2000), nullable=True),
        sa.Column('thumbnail_data', sa.Text(), nullable=True, comment='Inlined thumbnail as a data: URI'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False, comment='When the item was fetched (UTC)'),
        sa.Column('session_date', sa.Date(), nullable=False, comment='Local calendar day of the fetch'),
        sa.Column('is_seen', sa.Boolean(), nullable=False),
        sa.Column('is_saved', sa.Boolean(), nullable=False),
        sa.Column('is_consumed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_crawl_items')),
        sa.UniqueConstraint('url', name=op.f('uq_crawl_items_url')),
    )
    op.create_index('ix_crawl_items_session_date', 'crawl_items', ['session_date'], unique=False)
    op.create_index('ix_crawl_items_category', 'crawl_items', ['category'], unique=False)
    op.create_index('ix_crawl_items_is_consumed', 'crawl_items', ['is_consumed'], unique=False)

    # ================================
    # diagnostic_logs
    # ================================
    op.create_table(
        'diagnostic_logs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, comment='Event time (UTC)'),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.String(length=50), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('metadata', sa.Text(), nullable=True, comment='Free-form metadata, usually JSON'),
        sa.Column('related_item_id', sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_diagnostic_logs')),
    )
    op.create_index('ix_diagnostic_logs_severity', 'diagnostic_logs', ['severity'], unique=False)
    op.create_index('ix_diagnostic_logs_event_type', 'diagnostic_logs', ['event_type'], unique=False)
    op.create_index('ix_diagnostic_logs_timestamp', 'diagnostic_logs', ['timestamp'], unique=False)

    # ================================
    # app_state
    # ================================
    op.create_table(
        'app_state',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key', name=op.f('pk_app_state')),
    )


def downgrade() -> None:
    op.drop_table('app_state')

    op.drop_index('ix_diagnostic_logs_timestamp', table_name='diagnostic_logs')
    op.drop_index('ix_diagnostic_logs_event_type', table_name='diagnostic_logs')
    op.drop_index('ix_diagnostic_logs_severity', table_name='diagnostic_logs')
    op.drop_table('diagnostic_logs')

    op.drop_index('ix_crawl_items_is_consumed', table_name='crawl_items')
    op.drop_index('ix_crawl_items_category', table_name='crawl_items')
    op.drop_index('ix_crawl_items_session_date', table_name='crawl_items')
    op.drop_table('crawl_items')
