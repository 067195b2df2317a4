# src/domain/state_machine.py

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Set

from src.domain.actors import ActorRole
from src.domain.exceptions import (
    BookingCoreError,
    EvidenceRequiredError,
    ForbiddenError,
    InvalidStateTransitionError,
    TooEarlyError,
)


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


class RejectionReason(str, Enum):
    INVALID_TRANSITION = "INVALID_TRANSITION"
    FORBIDDEN = "FORBIDDEN"
    TOO_EARLY = "TOO_EARLY"
    EVIDENCE_REQUIRED = "EVIDENCE_REQUIRED"


@dataclass(frozen=True)
class TransitionDecision:
    from_status: BookingStatus
    to_status: BookingStatus
    reason: Optional[RejectionReason] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None

    def to_error(self) -> BookingCoreError:
        """
        Maps a rejected decision onto the domain error raised to callers.
        """
        if self.reason is RejectionReason.FORBIDDEN:
            return ForbiddenError(
                f"Your role may not change status from "
                f"{self.from_status.value} to {self.to_status.value}"
            )
        if self.reason is RejectionReason.TOO_EARLY:
            return TooEarlyError(
                "Booking cannot be started before its scheduled time"
            )
        if self.reason is RejectionReason.EVIDENCE_REQUIRED:
            return EvidenceRequiredError(
                "Completion evidence is required to complete a booking"
            )
        return InvalidStateTransitionError(
            from_state=self.from_status.value,
            to_state=self.to_status.value,
        )


_BOTH: FrozenSet[ActorRole] = frozenset({ActorRole.CUSTOMER, ActorRole.PROVIDER})
_PROVIDER_ONLY: FrozenSet[ActorRole] = frozenset({ActorRole.PROVIDER})


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Defines the legal edges and which roles may take them.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Dict[BookingStatus, FrozenSet[ActorRole]]] = {
        BookingStatus.PENDING: {
            BookingStatus.CONFIRMED: _PROVIDER_ONLY,
            BookingStatus.REJECTED: _PROVIDER_ONLY,
            BookingStatus.CANCELLED: _BOTH,
        },
        BookingStatus.CONFIRMED: {
            BookingStatus.IN_PROGRESS: _PROVIDER_ONLY,
            BookingStatus.CANCELLED: _BOTH,
        },
        BookingStatus.IN_PROGRESS: {
            BookingStatus.COMPLETED: _PROVIDER_ONLY,
            BookingStatus.CANCELLED: _BOTH,
        },
        BookingStatus.COMPLETED: {},
        BookingStatus.CANCELLED: {},
        BookingStatus.REJECTED: {},
    }

    _DELETABLE: FrozenSet[BookingStatus] = frozenset(
        {
            BookingStatus.PENDING,
            BookingStatus.CANCELLED,
            BookingStatus.REJECTED,
        }
    )

    _NOTES_EDITABLE: FrozenSet[BookingStatus] = frozenset(
        {
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
        }
    )

    @classmethod
    def decide(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
        role: ActorRole,
        now: datetime,
        scheduled_at: datetime,
        evidence_supplied: bool = False,
    ) -> TransitionDecision:
        """
        Classifies a requested transition. Never mutates anything.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)
        if not isinstance(role, ActorRole):
            raise TypeError(f"Expected ActorRole, got {type(role)}")

        edges = cls._ALLOWED_TRANSITIONS.get(from_status, {})
        if to_status not in edges:
            return TransitionDecision(
                from_status, to_status, RejectionReason.INVALID_TRANSITION
            )

        if role not in edges[to_status]:
            return TransitionDecision(
                from_status, to_status, RejectionReason.FORBIDDEN
            )

        if to_status is BookingStatus.IN_PROGRESS and now < scheduled_at:
            return TransitionDecision(
                from_status, to_status, RejectionReason.TOO_EARLY
            )

        if to_status is BookingStatus.COMPLETED and not evidence_supplied:
            return TransitionDecision(
                from_status, to_status, RejectionReason.EVIDENCE_REQUIRED
            )

        return TransitionDecision(from_status, to_status)

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if the edge exists for at least one role.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, {})

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
        role: ActorRole,
        now: datetime,
        scheduled_at: datetime,
        evidence_supplied: bool = False,
    ) -> None:
        """
        Raises the matching domain error if the transition is rejected.
        """
        decision = cls.decide(
            from_status,
            to_status,
            role,
            now,
            scheduled_at,
            evidence_supplied=evidence_supplied,
        )
        if not decision.accepted:
            raise decision.to_error()

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, {})) == 0

    @classmethod
    def is_deletable(cls, status: BookingStatus) -> bool:
        cls._ensure_valid_status(status)
        return status in cls._DELETABLE

    @classmethod
    def deletable_statuses(cls) -> FrozenSet[BookingStatus]:
        return cls._DELETABLE

    @classmethod
    def notes_editable(cls, status: BookingStatus) -> bool:
        cls._ensure_valid_status(status)
        return status in cls._NOTES_EDITABLE

    @classmethod
    def get_allowed_transitions(
        cls,
        status: BookingStatus,
        role: Optional[ActorRole] = None,
    ) -> Set[BookingStatus]:
        """
        Returns allowed next states from current state,
        optionally narrowed to the edges a role may take.
        """
        cls._ensure_valid_status(status)
        edges = cls._ALLOWED_TRANSITIONS.get(status, {})
        return {
            target
            for target, roles in edges.items()
            if role is None or role in roles
        }

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )
