from sqlalchemy.orm import Session

from src.domain.actors import ActorRole, Principal
from src.domain.exceptions import ForbiddenError, NotFoundError
from src.infrastructure.db.models import Notification
from src.infrastructure.repositories.notification_repository import NotificationRepository


class NotificationService:
    """Provider-facing notification inbox."""

    DEFAULT_LIMIT = 20

    def __init__(self, db: Session):
        self.db = db
        self.repository = NotificationRepository(db)

    def list_notifications(
        self,
        principal: Principal,
        limit: int = DEFAULT_LIMIT,
    ) -> list[Notification]:
        self._ensure_provider(principal)
        safe_limit = max(1, min(limit, 100))
        return self.repository.list_for_provider(principal.id, safe_limit)

    def mark_read(self, notification_id: int, principal: Principal) -> Notification:
        self._ensure_provider(principal)

        notification = self.repository.get_by_id(notification_id)
        if not notification or notification.provider_id != principal.id:
            raise NotFoundError("Notification", notification_id)

        notification.is_read = True
        self.db.commit()
        return notification

    def mark_all_read(self, principal: Principal) -> int:
        self._ensure_provider(principal)
        count = self.repository.mark_all_read(principal.id)
        self.db.commit()
        return count

    @staticmethod
    def _ensure_provider(principal: Principal) -> None:
        if principal.role is not ActorRole.PROVIDER:
            raise ForbiddenError("Notifications are only available to providers")
