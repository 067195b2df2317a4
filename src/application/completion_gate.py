import logging
from typing import Optional

from src.application.booking_service import BookingService
from src.domain.actors import Principal
from src.domain.exceptions import BookingCoreError, ForbiddenError, InvalidStateError
from src.domain.state_machine import BookingStateMachine, BookingStatus
from src.infrastructure.db.models import Booking
from src.infrastructure.storage.file_storage import FileStorage

logger = logging.getLogger(__name__)


class CompletionEvidenceGate:
    """
    Completes an IN_PROGRESS booking: the evidence artifact is stored
    first, and the status only changes once a reference exists.
    """

    def __init__(self, booking_service: BookingService, storage: FileStorage):
        self.booking_service = booking_service
        self.storage = storage

    def complete(
        self,
        booking_id: int,
        principal: Principal,
        content: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> Booking:
        booking = self.booking_service.get_booking(booking_id, principal)
        actor = self.booking_service.resolve(booking, principal)

        if booking.status is not BookingStatus.IN_PROGRESS:
            raise InvalidStateError(
                "Can only upload completion evidence for in-progress bookings"
            )

        if BookingStatus.COMPLETED not in BookingStateMachine.get_allowed_transitions(
            booking.status, actor.role
        ):
            raise ForbiddenError("Only the booking's provider can complete it")

        # Storage errors propagate unchanged; no transition is attempted.
        evidence_ref = self.storage.store(content, content_type, filename=filename)

        try:
            return self.booking_service.transition(
                booking_id,
                principal,
                BookingStatus.COMPLETED,
                evidence_ref=evidence_ref,
            )
        except BookingCoreError:
            logger.warning(
                "Completion failed after evidence upload, discarding artifact. booking_id=%s ref=%s",
                booking_id,
                evidence_ref,
            )
            self.storage.discard(evidence_ref)
            raise
