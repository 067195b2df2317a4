import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.domain.actors import ActorRole, Principal
from src.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Review
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.review_repository import ReviewRepository

logger = logging.getLogger(__name__)


class ReviewService:
    """Reviews are allowed once per booking, and only after completion."""

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.review_repository = ReviewRepository(db)

    def create_review(
        self,
        principal: Principal,
        booking_id: Optional[int],
        rating: Optional[int],
        comment: Optional[str] = None,
    ) -> Review:
        if not booking_id or rating is None or not 1 <= rating <= 5:
            raise InvalidInputError("Invalid rating or missing booking ID")

        if principal.role is not ActorRole.CUSTOMER:
            raise ForbiddenError("Only customers can review bookings")

        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)

        if booking.customer_id != principal.id:
            raise ForbiddenError("Access denied")

        if booking.status is not BookingStatus.COMPLETED:
            raise InvalidStateError("Can only review completed bookings")

        if self.review_repository.get_by_booking_id(booking_id):
            raise ConflictError("Booking already has a review")

        try:
            review = self.review_repository.create_review(
                booking_id=booking.id,
                service_id=booking.service_id,
                customer_id=principal.id,
                rating=rating,
                comment=comment or None,
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("Booking already has a review") from exc

        logger.info(
            "Review created. review_id=%s booking_id=%s rating=%s",
            review.id,
            booking_id,
            rating,
        )
        return review

    def list_reviews(self, service_id: int) -> list[Review]:
        return self.review_repository.list_for_service(service_id)
