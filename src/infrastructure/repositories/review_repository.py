# src/infrastructure/repositories/review_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import Review


class ReviewRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_booking_id(self, booking_id: int) -> Review | None:
        stmt = select(Review).where(Review.booking_id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_service(self, service_id: int) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.service_id == service_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_review(
        self,
        booking_id: int,
        service_id: int,
        customer_id: int,
        rating: int,
        comment: str | None,
    ) -> Review:
        review = Review(
            booking_id=booking_id,
            service_id=service_id,
            customer_id=customer_id,
            rating=rating,
            comment=comment,
        )
        self.db.add(review)
        self.db.flush()
        return review
