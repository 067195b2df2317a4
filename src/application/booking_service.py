import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from src.domain.actors import Actor, ActorRole, Principal, resolve_actor
from src.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from src.domain.state_machine import BookingStateMachine, BookingStatus
from src.infrastructure.db.models import Booking
from src.infrastructure.notifications import NotificationSink
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.service_repository import (
    CustomerRepository,
    ServiceRepository,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CustomerContact:
    name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]


class BookingService:
    """Application service coordinating the booking lifecycle."""

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationSink] = None,
        clock: Clock = utc_now,
        tz: Optional[str] = None,
    ):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.service_repository = ServiceRepository(db)
        self.customer_repository = CustomerRepository(db)
        self.notifier = notifier or NotificationSink(db)
        self.clock = clock
        self.tz = ZoneInfo(tz or os.getenv("BOOKING_TIMEZONE", "UTC"))

    # ---------------------
    # CREATION
    # ---------------------

    def create_booking(
        self,
        customer_id: int,
        service_id: Optional[int],
        scheduled_date,
        scheduled_time,
        contact: CustomerContact,
        notes: Optional[str] = None,
    ) -> Booking:
        if not service_id:
            raise InvalidInputError("Missing required fields: serviceId")

        missing = [
            name
            for name, value in (
                ("customerName", contact.name),
                ("customerEmail", contact.email),
                ("customerPhone", contact.phone),
                ("customerAddress", contact.address),
                ("scheduledDate", scheduled_date),
                ("scheduledTime", scheduled_time),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise InvalidInputError(f"Missing required fields: {', '.join(missing)}")

        slot_date, slot_time = self._parse_slot(scheduled_date, scheduled_time)
        if self._scheduled_at(slot_date, slot_time) < self.clock():
            raise InvalidInputError("Scheduled time must not be in the past")

        customer = self.customer_repository.get_by_id(customer_id)
        if not customer:
            raise NotFoundError("Customer", customer_id)

        service = self.service_repository.get_by_id(service_id)
        if not service:
            raise NotFoundError("Service", service_id)

        booking = self.booking_repository.create_booking(
            service_id=service.id,
            customer_id=customer.id,
            provider_id=service.provider_id,
            customer_name=contact.name.strip(),
            customer_email=contact.email.strip(),
            customer_phone=contact.phone.strip(),
            customer_address=contact.address.strip(),
            scheduled_date=slot_date,
            scheduled_time=slot_time.strftime(TIME_FORMAT),
            total_amount=service.price,
            notes=notes or None,
        )
        self.db.commit()

        logger.info(
            "Booking created. booking_id=%s service_id=%s customer_id=%s provider_id=%s amount=%s",
            booking.id,
            service.id,
            customer.id,
            service.provider_id,
            booking.total_amount,
        )

        self.notifier.enqueue(
            provider_id=service.provider_id,
            title="New Booking Request",
            message=(
                f"{booking.customer_name} has requested {service.name} "
                f"for {slot_date.isoformat()} at {booking.scheduled_time}"
            ),
            booking_id=booking.id,
        )
        return self._reload(booking.id)

    # ---------------------
    # READS
    # ---------------------

    def get_booking(self, booking_id: int, principal: Principal) -> Booking:
        booking, _ = self._load_for(booking_id, principal)
        return booking

    def list_bookings(self, principal: Principal) -> list[Booking]:
        if principal.role is ActorRole.PROVIDER:
            return self.booking_repository.list_for_provider(principal.id)
        return self.booking_repository.list_for_customer(principal.id)

    # ---------------------
    # MUTATIONS
    # ---------------------

    def transition(
        self,
        booking_id: int,
        principal: Principal,
        requested_status: BookingStatus,
        evidence_ref: Optional[str] = None,
    ) -> Booking:
        booking, actor = self._load_for(booking_id, principal)
        current_status = booking.status

        if evidence_ref is not None and requested_status is not BookingStatus.COMPLETED:
            raise InvalidInputError(
                "Completion evidence can only accompany a COMPLETED transition"
            )

        now = self.clock()
        BookingStateMachine.validate_transition(
            current_status,
            requested_status,
            actor.role,
            now,
            self.scheduled_at(booking),
            evidence_supplied=bool(evidence_ref),
        )

        values = {"status": requested_status, "updated_at": now}
        if requested_status is BookingStatus.COMPLETED:
            values["completion_evidence_ref"] = evidence_ref

        self._apply(booking_id, current_status, values)

        logger.info(
            "Booking status changed. booking_id=%s %s -> %s by %s %s",
            booking_id,
            current_status.value,
            requested_status.value,
            actor.role.value,
            actor.id,
        )

        updated = self._reload(booking_id)
        self._notify_status_change(updated, actor)
        return updated

    def update_notes(
        self,
        booking_id: int,
        principal: Principal,
        notes: Optional[str],
    ) -> Booking:
        booking, actor = self._load_for(booking_id, principal)

        if not actor.is_customer:
            raise ForbiddenError("Only the customer can edit booking notes")

        if not BookingStateMachine.notes_editable(booking.status):
            raise InvalidStateError(
                f"Notes cannot be changed while booking is {booking.status.value}"
            )

        self._apply(
            booking_id,
            booking.status,
            {"notes": notes or None, "updated_at": self.clock()},
        )
        return self._reload(booking_id)

    def delete_booking(self, booking_id: int, principal: Principal) -> None:
        booking, actor = self._load_for(booking_id, principal)

        if not BookingStateMachine.is_deletable(booking.status):
            raise InvalidStateError(
                "Can only delete pending, cancelled, or rejected bookings"
            )

        deleted = self.booking_repository.delete_if_status(
            booking_id,
            BookingStateMachine.deletable_statuses(),
        )
        if deleted == 0:
            self.db.rollback()
            raise ConflictError(
                f"Booking {booking_id} changed while it was being deleted"
            )
        self.db.commit()

        logger.info(
            "Booking deleted. booking_id=%s status=%s by %s %s",
            booking_id,
            booking.status.value,
            actor.role.value,
            actor.id,
        )

    # ---------------------
    # HELPERS
    # ---------------------

    def scheduled_at(self, booking: Booking) -> datetime:
        slot_date, slot_time = self._parse_slot(
            booking.scheduled_date,
            booking.scheduled_time,
        )
        return self._scheduled_at(slot_date, slot_time)

    def resolve(self, booking: Booking, principal: Principal) -> Actor:
        return resolve_actor(principal, booking.customer_id, booking.provider_id)

    def _load_for(self, booking_id: int, principal: Principal) -> tuple[Booking, Actor]:
        booking = self.booking_repository.get_by_id(booking_id, with_relations=True)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking, self.resolve(booking, principal)

    def _apply(self, booking_id: int, expected_status: BookingStatus, values: dict) -> None:
        affected = self.booking_repository.conditional_update(
            booking_id,
            expected_status,
            values,
        )
        if affected == 0:
            self.db.rollback()
            logger.warning(
                "Lost update race. booking_id=%s expected_status=%s",
                booking_id,
                expected_status.value,
            )
            raise ConflictError(
                f"Booking {booking_id} was modified by another request"
            )
        self.db.commit()

    def _reload(self, booking_id: int) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id, with_relations=True)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _notify_status_change(self, booking: Booking, actor: Actor) -> None:
        if not actor.is_customer:
            return

        self.notifier.enqueue(
            provider_id=booking.provider_id,
            title="Booking Cancelled",
            message=(
                f"{booking.customer_name} cancelled the booking for "
                f"{booking.scheduled_date.isoformat()} at {booking.scheduled_time}"
            ),
            booking_id=booking.id,
        )

    def _scheduled_at(self, slot_date: date, slot_time: time) -> datetime:
        return datetime.combine(slot_date, slot_time, tzinfo=self.tz)

    @staticmethod
    def _parse_slot(scheduled_date, scheduled_time) -> tuple[date, time]:
        try:
            if isinstance(scheduled_date, date):
                slot_date = scheduled_date
            else:
                slot_date = datetime.strptime(str(scheduled_date).strip(), DATE_FORMAT).date()

            if isinstance(scheduled_time, time):
                slot_time = scheduled_time
            else:
                slot_time = datetime.strptime(str(scheduled_time).strip(), TIME_FORMAT).time()
        except ValueError as exc:
            raise InvalidInputError(
                "scheduledDate must be YYYY-MM-DD and scheduledTime must be HH:MM"
            ) from exc

        return slot_date, slot_time.replace(second=0, microsecond=0)
