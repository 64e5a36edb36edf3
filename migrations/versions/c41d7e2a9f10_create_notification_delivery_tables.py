"""create_notification_delivery_tables

Revision ID: c41d7e2a9f10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'c41d7e2a9f10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the event queue, inbox, preference and push registry tables."""

    # --- notification_events (producer queue, dedup on id) ---
    op.create_table('notification_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('recipient_id', sa.UUID(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False, server_default=''),
        sa.Column('link', sa.String(length=500), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True, server_default='{}'),
        sa.Column('status', sa.String(length=20), nullable=False,
                  server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'sent', 'suppressed', 'failed')",
                           name='ck_notification_events_status'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_events_recipient_id',
                    'notification_events', ['recipient_id'])
    op.create_index('ix_notification_events_status_created_at',
                    'notification_events', ['status', 'created_at'])
    op.create_index('idx_notification_events_pending',
                    'notification_events', ['created_at'],
                    postgresql_where=sa.text("status = 'pending'"))

    # --- inbox_items (in-app surface, one per delivered event) ---
    op.create_table('inbox_items',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('event_id', sa.UUID(), nullable=False),
        sa.Column('recipient_id', sa.UUID(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False, server_default=''),
        sa.Column('link', sa.String(length=500), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True, server_default='{}'),
        sa.Column('is_read', sa.Boolean(), nullable=False,
                  server_default='false'),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id'),
    )
    op.create_index('ix_inbox_items_recipient_read',
                    'inbox_items', ['recipient_id', 'is_read'])
    op.create_index('ix_inbox_items_recipient_delivered',
                    'inbox_items', ['recipient_id', 'delivered_at'])

    # --- notification_preferences (one row per user) ---
    op.create_table('notification_preferences',
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('notifications_enabled', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('chat_mode', sa.String(length=20), nullable=False,
                  server_default='all'),
        sa.Column('team_activity', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('task_updates', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('system_alerts', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('account_security', sa.Boolean(), nullable=False,
                  server_default='true'),
        sa.Column('updated_at', sa.DateTime(), nullable=True,
                  server_default=sa.text('NOW()')),
        sa.CheckConstraint("chat_mode IN ('all', 'mentions', 'mute')",
                           name='ck_notification_preferences_chat_mode'),
        sa.PrimaryKeyConstraint('user_id'),
    )

    # --- push_subscriptions (registry, unique per user + endpoint) ---
    op.create_table('push_subscriptions',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('endpoint', sa.Text(), nullable=False),
        sa.Column('p256dh', sa.Text(), nullable=False),
        sa.Column('auth', sa.Text(), nullable=False),
        sa.Column('failure_count', sa.Integer(), nullable=False,
                  server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True,
                  server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(), nullable=True,
                  server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'endpoint',
                            name='uq_push_subscriptions_user_endpoint'),
    )
    op.create_index('ix_push_subscriptions_user_id',
                    'push_subscriptions', ['user_id'])

    # --- RLS: the API connects as a service role and bypasses these;
    # they apply to direct client connections (e.g. realtime). ---
    for table in [
        'notification_events',
        'inbox_items',
        'notification_preferences',
        'push_subscriptions',
    ]:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;")

    op.execute("""
        CREATE POLICY inbox_items_select ON inbox_items
            FOR SELECT USING (recipient_id = (SELECT auth.uid()));
    """)
    op.execute("""
        CREATE POLICY inbox_items_update ON inbox_items
            FOR UPDATE USING (recipient_id = (SELECT auth.uid()));
    """)
    op.execute("""
        CREATE POLICY notification_preferences_own ON notification_preferences
            FOR ALL USING (user_id = (SELECT auth.uid()))
            WITH CHECK (user_id = (SELECT auth.uid()));
    """)
    op.execute("""
        CREATE POLICY push_subscriptions_own ON push_subscriptions
            FOR ALL USING (user_id = (SELECT auth.uid()))
            WITH CHECK (user_id = (SELECT auth.uid()));
    """)


def downgrade() -> None:
    """Drop the notification delivery tables."""
    op.execute("DROP POLICY IF EXISTS push_subscriptions_own ON push_subscriptions;")
    op.execute("DROP POLICY IF EXISTS notification_preferences_own ON notification_preferences;")
    op.execute("DROP POLICY IF EXISTS inbox_items_update ON inbox_items;")
    op.execute("DROP POLICY IF EXISTS inbox_items_select ON inbox_items;")

    op.drop_index('ix_push_subscriptions_user_id', table_name='push_subscriptions')
    op.drop_table('push_subscriptions')
    op.drop_table('notification_preferences')
    op.drop_index('ix_inbox_items_recipient_delivered', table_name='inbox_items')
    op.drop_index('ix_inbox_items_recipient_read', table_name='inbox_items')
    op.drop_table('inbox_items')
    op.drop_index('idx_notification_events_pending', table_name='notification_events')
    op.drop_index('ix_notification_events_status_created_at', table_name='notification_events')
    op.drop_index('ix_notification_events_recipient_id', table_name='notification_events')
    op.drop_table('notification_events')
