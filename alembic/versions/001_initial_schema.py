"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Group call event log
    op.create_table(
        'planetkit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('service_id', sa.String(length=100), nullable=True),
        sa.Column('room_id', sa.String(length=200), nullable=True),
        sa.Column('user_id', sa.String(length=200), nullable=True),
        sa.Column('display_name', sa.String(length=200), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_planetkit_events_id'), 'planetkit_events', ['id'], unique=False)
    op.create_index(op.f('ix_planetkit_events_event_type'), 'planetkit_events', ['event_type'], unique=False)
    op.create_index(op.f('ix_planetkit_events_room_id'), 'planetkit_events', ['room_id'], unique=False)
    op.create_index(op.f('ix_planetkit_events_created_at'), 'planetkit_events', ['created_at'], unique=False)

    # Agent call sessions
    op.create_table(
        'agent_call_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sid', sa.String(length=200), nullable=False),
        sa.Column('caller_user_id', sa.String(length=200), nullable=False),
        sa.Column('callee_user_id', sa.String(length=200), nullable=False),
        sa.Column('caller_service_id', sa.String(length=100), nullable=True),
        sa.Column('callee_service_id', sa.String(length=100), nullable=True),
        sa.Column('room_id', sa.String(length=200), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('audio_file_ids', sa.JSON(), nullable=True),
        sa.Column('language', sa.String(length=10), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('answered_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('timeout_at', sa.DateTime(), nullable=True),
        sa.Column('timeout_notification_sent', sa.Boolean(), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('retry_scheduled_at', sa.DateTime(), nullable=True),
        sa.Column('parent_sid', sa.String(length=200), nullable=True),
        sa.Column('is_retry', sa.Boolean(), nullable=False),
        sa.Column('retry_attempt', sa.Integer(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_agent_call_sessions_id'), 'agent_call_sessions', ['id'], unique=False)
    op.create_index(op.f('ix_agent_call_sessions_sid'), 'agent_call_sessions', ['sid'], unique=True)
    op.create_index(op.f('ix_agent_call_sessions_callee_user_id'), 'agent_call_sessions', ['callee_user_id'], unique=False)
    op.create_index(op.f('ix_agent_call_sessions_status'), 'agent_call_sessions', ['status'], unique=False)
    op.create_index(op.f('ix_agent_call_sessions_created_at'), 'agent_call_sessions', ['created_at'], unique=False)
    op.create_index(op.f('ix_agent_call_sessions_parent_sid'), 'agent_call_sessions', ['parent_sid'], unique=False)

    # Agent call event log
    op.create_table(
        'agent_call_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sid', sa.String(length=200), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_agent_call_events_id'), 'agent_call_events', ['id'], unique=False)
    op.create_index(op.f('ix_agent_call_events_sid'), 'agent_call_events', ['sid'], unique=False)
    op.create_index(op.f('ix_agent_call_events_event_type'), 'agent_call_events', ['event_type'], unique=False)
    op.create_index(op.f('ix_agent_call_events_created_at'), 'agent_call_events', ['created_at'], unique=False)

    # Retry queue
    op.create_table(
        'agent_call_retry_queue',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_sid', sa.String(length=200), nullable=False),
        sa.Column('retry_sid', sa.String(length=200), nullable=True),
        sa.Column('callee_user_id', sa.String(length=200), nullable=False),
        sa.Column('audio_file_ids', sa.JSON(), nullable=False),
        sa.Column('language', sa.String(length=10), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('executed_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('retry_attempt', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_agent_call_retry_queue_id'), 'agent_call_retry_queue', ['id'], unique=False)
    op.create_index(op.f('ix_agent_call_retry_queue_original_sid'), 'agent_call_retry_queue', ['original_sid'], unique=False)
    op.create_index(op.f('ix_agent_call_retry_queue_callee_user_id'), 'agent_call_retry_queue', ['callee_user_id'], unique=False)
    op.create_index(op.f('ix_agent_call_retry_queue_scheduled_at'), 'agent_call_retry_queue', ['scheduled_at'], unique=False)
    op.create_index(op.f('ix_agent_call_retry_queue_status'), 'agent_call_retry_queue', ['status'], unique=False)

    # Browser push subscriptions
    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=200), nullable=False),
        sa.Column('endpoint', sa.Text(), nullable=False),
        sa.Column('p256dh_key', sa.Text(), nullable=False),
        sa.Column('auth_key', sa.Text(), nullable=False),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_push_subscriptions_id'), 'push_subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_push_subscriptions_user_id'), 'push_subscriptions', ['user_id'], unique=True)

    # Delivered incoming-call notifications
    op.create_table(
        'call_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('call_id', sa.String(length=200), nullable=False),
        sa.Column('caller_user_id', sa.String(length=200), nullable=False),
        sa.Column('callee_user_id', sa.String(length=200), nullable=False),
        sa.Column('room_id', sa.String(length=200), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_call_notifications_id'), 'call_notifications', ['id'], unique=False)
    op.create_index(op.f('ix_call_notifications_call_id'), 'call_notifications', ['call_id'], unique=False)
    op.create_index(op.f('ix_call_notifications_callee_user_id'), 'call_notifications', ['callee_user_id'], unique=False)
    op.create_index(op.f('ix_call_notifications_created_at'), 'call_notifications', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('call_notifications')
    op.drop_table('push_subscriptions')
    op.drop_table('agent_call_retry_queue')
    op.drop_table('agent_call_events')
    op.drop_table('agent_call_sessions')
    op.drop_table('planetkit_events')
