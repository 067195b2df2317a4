# src/infrastructure/repositories/notification_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, update

from src.infrastructure.db.models import Notification


class NotificationRepository:

    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        provider_id: int,
        title: str,
        message: str,
        type: str,
        booking_id: int | None = None,
    ) -> Notification:
        notification = Notification(
            provider_id=provider_id,
            title=title,
            message=message,
            type=type,
            booking_id=booking_id,
        )
        self.db.add(notification)
        self.db.flush()
        return notification

    def get_by_id(self, notification_id: int) -> Notification | None:
        stmt = select(Notification).where(Notification.id == notification_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_provider(self, provider_id: int, limit: int) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.provider_id == provider_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def mark_all_read(self, provider_id: int) -> int:
        stmt = (
            update(Notification)
            .where(Notification.provider_id == provider_id)
            .where(Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount
