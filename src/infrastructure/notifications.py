# src/infrastructure/notifications.py

import logging

from sqlalchemy.orm import Session

from src.infrastructure.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)

BOOKING_NOTIFICATION = "BOOKING"


class NotificationSink:
    """
    Appends provider notifications after a booking change has committed.
    Delivery is best-effort: failures are logged and never raised.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = NotificationRepository(db)

    def enqueue(
        self,
        provider_id: int,
        title: str,
        message: str,
        type: str = BOOKING_NOTIFICATION,
        booking_id: int | None = None,
    ) -> None:
        try:
            self.repository.add(
                provider_id=provider_id,
                title=title,
                message=message,
                type=type,
                booking_id=booking_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(
                "Failed to create notification. provider_id=%s booking_id=%s title=%s",
                provider_id,
                booking_id,
                title,
            )
            return

        logger.info(
            "Notification created. provider_id=%s booking_id=%s",
            provider_id,
            booking_id,
        )
