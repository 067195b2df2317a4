import pytest

from src.application.completion_gate import CompletionEvidenceGate
from src.domain.exceptions import (
    ForbiddenError,
    InvalidFileError,
    InvalidStateError,
    InvalidStateTransitionError,
    StorageError,
)
from src.domain.state_machine import BookingStatus
from src.infrastructure.storage.file_storage import FileStorage


class RecordingStorage(FileStorage):
    """Storage double that records calls and can be told to fail."""

    def __init__(self, fail_with: Exception | None = None):
        super().__init__()
        self.fail_with = fail_with
        self.stored: list[str] = []
        self.discarded: list[str] = []

    def store(self, content, content_type, filename=None):
        if self.fail_with is not None:
            raise self.fail_with
        ref = f"/uploads/evidence-{len(self.stored) + 1}.png"
        self.stored.append(ref)
        return ref

    def discard(self, ref):
        self.discarded.append(ref)


def test_upload_completes_booking_with_reference(booking_service, make_booking, seed, file_storage, png_bytes):
    booking_id = make_booking(BookingStatus.IN_PROGRESS)
    gate = CompletionEvidenceGate(booking_service, file_storage)

    booking = gate.complete(booking_id, seed.provider_principal, png_bytes, "image/png", "proof.png")

    assert booking.status is BookingStatus.COMPLETED
    assert booking.completion_evidence_ref.startswith("/uploads/")
    assert booking.completion_evidence_ref.endswith(".png")

    stored_name = booking.completion_evidence_ref.rsplit("/", 1)[-1]
    assert (file_storage.upload_dir / stored_name).read_bytes() == png_bytes


def test_storage_failure_leaves_booking_in_progress(booking_service, make_booking, seed, png_bytes):
    booking_id = make_booking(BookingStatus.IN_PROGRESS)
    gate = CompletionEvidenceGate(booking_service, RecordingStorage(StorageError("disk full")))

    with pytest.raises(StorageError):
        gate.complete(booking_id, seed.provider_principal, png_bytes, "image/png")

    booking = booking_service.get_booking(booking_id, seed.provider_principal)
    assert booking.status is BookingStatus.IN_PROGRESS
    assert booking.completion_evidence_ref is None


def test_invalid_file_leaves_booking_in_progress(booking_service, make_booking, seed, file_storage):
    booking_id = make_booking(BookingStatus.IN_PROGRESS)
    gate = CompletionEvidenceGate(booking_service, file_storage)

    with pytest.raises(InvalidFileError):
        gate.complete(booking_id, seed.provider_principal, b"not an image", "image/png")

    booking = booking_service.get_booking(booking_id, seed.provider_principal)
    assert booking.status is BookingStatus.IN_PROGRESS


@pytest.mark.parametrize(
    "status",
    [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED],
)
def test_upload_refused_unless_in_progress(booking_service, make_booking, seed, png_bytes, status):
    booking_id = make_booking(status)
    storage = RecordingStorage()
    gate = CompletionEvidenceGate(booking_service, storage)

    with pytest.raises(InvalidStateError):
        gate.complete(booking_id, seed.provider_principal, png_bytes, "image/png")

    assert storage.stored == []


def test_customer_cannot_complete(booking_service, make_booking, seed, png_bytes):
    booking_id = make_booking(BookingStatus.IN_PROGRESS)
    storage = RecordingStorage()
    gate = CompletionEvidenceGate(booking_service, storage)

    with pytest.raises(ForbiddenError):
        gate.complete(booking_id, seed.customer_principal, png_bytes, "image/png")

    assert storage.stored == []


def test_stranger_cannot_complete(booking_service, make_booking, seed, png_bytes):
    booking_id = make_booking(BookingStatus.IN_PROGRESS)
    storage = RecordingStorage()
    gate = CompletionEvidenceGate(booking_service, storage)

    with pytest.raises(ForbiddenError):
        gate.complete(booking_id, seed.other_provider_principal, png_bytes, "image/png")

    assert storage.stored == []


def test_lost_race_discards_stored_artifact(booking_service, make_booking, seed, set_status, png_bytes):
    booking_id = make_booking(BookingStatus.IN_PROGRESS)

    class CancellingStorage(RecordingStorage):
        def store(self, content, content_type, filename=None):
            ref = super().store(content, content_type, filename)
            # The customer cancels while the upload is in flight.
            set_status(booking_id, BookingStatus.CANCELLED)
            return ref

    storage = CancellingStorage()
    gate = CompletionEvidenceGate(booking_service, storage)

    with pytest.raises(InvalidStateTransitionError):
        gate.complete(booking_id, seed.provider_principal, png_bytes, "image/png")

    assert storage.discarded == storage.stored == ["/uploads/evidence-1.png"]

    booking = booking_service.get_booking(booking_id, seed.provider_principal)
    assert booking.status is BookingStatus.CANCELLED
    assert booking.completion_evidence_ref is None
