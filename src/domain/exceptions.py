from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TOO_EARLY = "TOO_EARLY"
    EVIDENCE_REQUIRED = "EVIDENCE_REQUIRED"
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"
    STORAGE_ERROR = "STORAGE_ERROR"
    INVALID_FILE = "INVALID_FILE"


class BookingCoreError(Exception):
    """
    Base exception for all domain-level errors
    raised by the booking lifecycle core.
    """

    kind: ErrorKind = ErrorKind.INVALID_INPUT


class NotFoundError(BookingCoreError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier=None):
        self.resource = resource
        self.identifier = identifier

        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} {identifier} not found"
        super().__init__(message)


class UnauthorizedError(BookingCoreError):
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(BookingCoreError):
    kind = ErrorKind.FORBIDDEN


class InvalidInputError(BookingCoreError):
    kind = ErrorKind.INVALID_INPUT


class InvalidStateTransitionError(BookingCoreError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Cannot change status from "
            f"{from_state} to {to_state}"
        )
        super().__init__(message)


class TooEarlyError(BookingCoreError):
    """Raised when work is started before the scheduled slot."""

    kind = ErrorKind.TOO_EARLY


class EvidenceRequiredError(BookingCoreError):
    """Raised when completion is requested without a stored artifact."""

    kind = ErrorKind.EVIDENCE_REQUIRED


class InvalidStateError(BookingCoreError):
    """Raised when an operation is not allowed in the booking's current status."""

    kind = ErrorKind.INVALID_STATE


class ConflictError(BookingCoreError):
    """Raised when a concurrent request changed the booking first."""

    kind = ErrorKind.CONFLICT


class StorageError(BookingCoreError):
    kind = ErrorKind.STORAGE_ERROR


class InvalidFileError(BookingCoreError):
    kind = ErrorKind.INVALID_FILE
