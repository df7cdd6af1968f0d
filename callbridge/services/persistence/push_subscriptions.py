"""Push subscription and call notification persistence."""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import CallNotification, PushSubscription


class PushSubscriptionPersistenceService:
    """Service for browser push subscriptions, one per user."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_subscription(self, user_id: str) -> Optional[PushSubscription]:
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def upsert_subscription(
        self,
        user_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """Create the user's subscription or overwrite the existing one."""
        subscription = await self.get_subscription(user_id)
        if subscription is None:
            subscription = PushSubscription(
                user_id=user_id,
                endpoint=endpoint,
                p256dh_key=p256dh_key,
                auth_key=auth_key,
                user_agent=user_agent,
            )
            self.db.add(subscription)
        else:
            subscription.endpoint = endpoint
            subscription.p256dh_key = p256dh_key
            subscription.auth_key = auth_key
            subscription.user_agent = user_agent
            subscription.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(subscription)
        return subscription

    async def delete_subscription(self, user_id: str) -> None:
        await self.db.execute(
            delete(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        await self.db.commit()

    async def record_call_notification(
        self,
        call_id: str,
        caller_user_id: str,
        callee_user_id: str,
        room_id: Optional[str],
        data: Optional[Dict[str, Any]] = None,
    ) -> CallNotification:
        notification = CallNotification(
            call_id=call_id,
            caller_user_id=caller_user_id,
            callee_user_id=callee_user_id,
            room_id=room_id,
            status="sent",
            data=data or {},
        )
        self.db.add(notification)
        await self.db.commit()
        await self.db.refresh(notification)
        return notification
