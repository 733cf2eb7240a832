"""calendar mirror schema

Revision ID: 0001_calendar_mirror
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '0001_calendar_mirror'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


sync_mode = sa.Enum('FULL', 'CUSTOM', name='syncmode')
sync_status = sa.Enum('DISABLED', 'PENDING', 'SYNCED', 'ERROR', name='syncstatus')
event_status = sa.Enum('PENDING', 'PUBLISHED', name='eventstatus')
subscription_kind = sa.Enum('FULL', 'CUSTOM', name='subscriptionkind')
follow_source = sa.Enum('MANUAL', 'FILTER', name='followsource')
account_provider = sa.Enum('google', name='accountprovider')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('gcal_sync_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('gcal_sync_pending', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('gcal_sync_mode', sync_mode, nullable=False, server_default='FULL'),
        sa.Column('gcal_sync_status', sync_status, nullable=False, server_default='DISABLED'),
        sa.Column('gcal_calendar_id', sa.String(), nullable=True),
        sa.Column('gcal_last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('gcal_last_sync_error', sa.Text(), nullable=True),
        sa.Column('gcal_last_sync_attempt_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_gcal_sync_pending', 'users', ['gcal_sync_pending'])

    op.create_table(
        'linked_accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider', account_provider, nullable=False),
        sa.Column('provider_account_id', sa.String(), nullable=True),
        sa.Column('access_token', sa.String(), nullable=True),
        sa.Column('refresh_token', sa.String(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'provider', name='uq_linked_accounts_user_provider'),
    )
    op.create_index('ix_linked_accounts_id', 'linked_accounts', ['id'])
    op.create_index('ix_linked_accounts_user_id', 'linked_accounts', ['user_id'])
    op.create_index('ix_linked_accounts_provider', 'linked_accounts', ['provider'])

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('start', sa.DateTime(), nullable=False),
        sa.Column('end', sa.DateTime(), nullable=False),
        sa.Column('timezone', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=True),
        sa.Column('tags', sa.Text(), nullable=True),
        sa.Column('country', sa.String(), nullable=True),
        sa.Column('region', sa.String(), nullable=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('status', event_status, nullable=False, server_default='PUBLISHED'),
        sa.Column('subscribers', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_events_id', 'events', ['id'])
    op.create_index('ix_events_status', 'events', ['status'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', subscription_kind, nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('filter', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_user_kind_active', 'subscriptions', ['user_id', 'kind', 'active'])

    op.create_table(
        'event_follows',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'subscription_id',
            sa.Integer(),
            sa.ForeignKey('subscriptions.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('source', follow_source, nullable=False, server_default='MANUAL'),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'event_id', name='uq_event_follows_user_event'),
    )
    op.create_index('ix_event_follows_id', 'event_follows', ['id'])
    op.create_index('ix_event_follows_user_id', 'event_follows', ['user_id'])
    op.create_index('ix_event_follows_event_id', 'event_follows', ['event_id'])

    op.create_table(
        'filter_exclusions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'subscription_id',
            sa.Integer(),
            sa.ForeignKey('subscriptions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'subscription_id', 'event_id', name='uq_filter_exclusions_triple'),
    )
    op.create_index('ix_filter_exclusions_id', 'filter_exclusions', ['id'])
    op.create_index('ix_filter_exclusions_user_id', 'filter_exclusions', ['user_id'])
    op.create_index('ix_filter_exclusions_event_id', 'filter_exclusions', ['event_id'])

    op.create_table(
        'user_event_syncs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('external_event_id', sa.String(), nullable=False),
        sa.Column('synced_at', sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'event_id', name='uq_user_event_syncs_user_event'),
    )
    op.create_index('ix_user_event_syncs_id', 'user_event_syncs', ['id'])
    op.create_index('ix_user_event_syncs_user_id', 'user_event_syncs', ['user_id'])


def downgrade() -> None:
    for table in (
        'user_event_syncs',
        'filter_exclusions',
        'event_follows',
        'subscriptions',
        'events',
        'linked_accounts',
        'users',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_type in (
        follow_source,
        subscription_kind,
        event_status,
        account_provider,
        sync_status,
        sync_mode,
    ):
        enum_type.drop(bind, checkfirst=True)
