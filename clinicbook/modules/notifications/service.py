import uuid
import logging
from typing import Protocol, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from clinicbook.core.errors import NotFound
from clinicbook.modules.notifications.models import Notification

log = logging.getLogger(__name__)

class NotificationSink(Protocol):
    async def notify(self, user_id: uuid.UUID, title: str, message: str) -> None: ...

class NotificationsService(NotificationSink):
    def __init__(self, s: AsyncSession): self.s = s

    async def notify(self, user_id: uuid.UUID, title: str, message: str) -> None:
        n = Notification(user_id=user_id, title=title, message=message)
        self.s.add(n); await self.s.flush(); await self.s.commit()
        log.info("Notification %s queued for user %s", n.id, user_id)

    async def list_for_user(self, user_id: uuid.UUID) -> Sequence[Notification]:
        res = await self.s.execute(
            select(Notification).where(Notification.user_id == user_id).order_by(Notification.created_at.desc(), Notification.id)
        )
        return res.scalars().all()

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        res = await self.s.execute(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        n = res.scalar_one_or_none()
        if not n:
            raise NotFound("Notification not found")
        n.is_read = True
        await self.s.commit()
        return n

class SessionScopedNotifier(NotificationSink):
    """Writes every notification in a session of its own.

    The caller's session is never flushed, committed or rolled back here, so
    a failed notification leaves the caller's loaded objects untouched.
    """
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def notify(self, user_id: uuid.UUID, title: str, message: str) -> None:
        async with self.session_factory() as s:
            await NotificationsService(s).notify(user_id, title, message)

def notifier_for(session: AsyncSession) -> SessionScopedNotifier:
    """Default sink for services working on ``session``: same engine, separate sessions."""
    return SessionScopedNotifier(async_sessionmaker(session.bind, expire_on_commit=False, class_=AsyncSession))
