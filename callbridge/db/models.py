"""Database models."""
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class PlanetKitEvent(Base):
    """Group call lifecycle event reported by the conferencing provider."""

    __tablename__ = "planetkit_events"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    service_id = Column(String(100), nullable=True)
    room_id = Column(String(200), nullable=True, index=True)
    user_id = Column(String(200), nullable=True)
    display_name = Column(String(200), nullable=True)
    timestamp = Column(BigInteger, nullable=True)  # epoch millis from the provider
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    data = Column(JSON, nullable=True)


class AgentCallSession(Base):
    """One agent-initiated call attempt."""

    __tablename__ = "agent_call_sessions"

    id = Column(Integer, primary_key=True, index=True)
    sid = Column(String(200), unique=True, index=True, nullable=False)
    caller_user_id = Column(String(200), nullable=False)
    callee_user_id = Column(String(200), nullable=False, index=True)
    caller_service_id = Column(String(100), nullable=True)
    callee_service_id = Column(String(100), nullable=True)
    room_id = Column(String(200), nullable=True)
    status = Column(String(50), default="initiated", nullable=False, index=True)
    audio_file_ids = Column(JSON, nullable=True)
    language = Column(String(10), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    answered_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    timeout_at = Column(DateTime, nullable=True)
    timeout_notification_sent = Column(Boolean, default=False, nullable=False)
    retry_count = Column(Integer, default=0, nullable=False)
    retry_scheduled_at = Column(DateTime, nullable=True)
    parent_sid = Column(String(200), nullable=True, index=True)
    is_retry = Column(Boolean, default=False, nullable=False)
    retry_attempt = Column(Integer, default=0, nullable=False)
    data = Column(JSON, nullable=True)


class AgentCallEvent(Base):
    """Append-only log row for an agent call."""

    __tablename__ = "agent_call_events"

    id = Column(Integer, primary_key=True, index=True)
    sid = Column(String(200), nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    status = Column(String(50), nullable=True)
    timestamp = Column(BigInteger, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    data = Column(JSON, nullable=True)


class AgentCallRetry(Base):
    """Queued retry of a missed or failed agent call."""

    __tablename__ = "agent_call_retry_queue"

    id = Column(Integer, primary_key=True, index=True)
    original_sid = Column(String(200), nullable=False, index=True)
    retry_sid = Column(String(200), nullable=True)
    callee_user_id = Column(String(200), nullable=False, index=True)
    audio_file_ids = Column(JSON, nullable=False)
    language = Column(String(10), default="ko", nullable=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    executed_at = Column(DateTime, nullable=True)
    status = Column(String(50), default="pending", nullable=False, index=True)  # pending, completed, failed
    retry_attempt = Column(Integer, default=1, nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    data = Column(JSON, nullable=True)


class PushSubscription(Base):
    """Browser push endpoint registered by a user."""

    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(200), unique=True, index=True, nullable=False)
    endpoint = Column(Text, nullable=False)
    p256dh_key = Column(Text, nullable=False)
    auth_key = Column(Text, nullable=False)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class CallNotification(Base):
    """Record of an incoming-call push that was delivered."""

    __tablename__ = "call_notifications"

    id = Column(Integer, primary_key=True, index=True)
    call_id = Column(String(200), nullable=False, index=True)
    caller_user_id = Column(String(200), nullable=False)
    callee_user_id = Column(String(200), nullable=False, index=True)
    room_id = Column(String(200), nullable=True)
    status = Column(String(50), default="sent", nullable=False)
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    data = Column(JSON, nullable=True)
