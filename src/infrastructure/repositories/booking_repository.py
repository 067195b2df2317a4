# src/infrastructure/repositories/booking_repository.py

from typing import Any, Iterable

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import delete, select, update

from src.infrastructure.db.models import Booking, Service
from src.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: int,
        with_relations: bool = False,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        if with_relations:
            stmt = stmt.options(
                selectinload(Booking.service).selectinload(Service.provider),
                selectinload(Booking.customer),
            )

        # Always read the committed row, never a copy cached by this session.
        stmt = stmt.execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_customer(self, customer_id: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.customer_id == customer_id)
            .options(selectinload(Booking.service).selectinload(Service.provider))
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_provider(self, provider_id: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.provider_id == provider_id)
            .options(
                selectinload(Booking.service),
                selectinload(Booking.customer),
            )
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_booking(self, **fields: Any) -> Booking:

        booking = Booking(status=BookingStatus.PENDING, **fields)

        self.db.add(booking)
        self.db.flush()
        return booking

    def conditional_update(
        self,
        booking_id: int,
        expected_status: BookingStatus,
        values: dict[str, Any],
    ) -> int:
        """
        UPDATE ... WHERE id = :id AND status = :expected_status
        Returns the number of rows affected (0 means the row moved on).
        """

        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount

    def delete_if_status(
        self,
        booking_id: int,
        statuses: Iterable[BookingStatus],
    ) -> int:

        stmt = (
            delete(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status.in_(list(statuses)))
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount
