# tests/unit/test_state_machine.py

from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from src.domain.actors import ActorRole
from src.domain.exceptions import (
    EvidenceRequiredError,
    ForbiddenError,
    InvalidStateTransitionError,
    TooEarlyError,
)
from src.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    RejectionReason,
)

SCHEDULED_AT = datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)
AFTER_SLOT = SCHEDULED_AT + timedelta(minutes=1)

CUSTOMER = ActorRole.CUSTOMER
PROVIDER = ActorRole.PROVIDER

LEGAL = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED, PROVIDER),
    (BookingStatus.PENDING, BookingStatus.REJECTED, PROVIDER),
    (BookingStatus.PENDING, BookingStatus.CANCELLED, CUSTOMER),
    (BookingStatus.PENDING, BookingStatus.CANCELLED, PROVIDER),
    (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, PROVIDER),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED, CUSTOMER),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED, PROVIDER),
    (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, PROVIDER),
    (BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, CUSTOMER),
    (BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, PROVIDER),
}

EDGES = {(src, dst) for src, dst, _ in LEGAL}

ALL_TRIPLES = list(product(BookingStatus, BookingStatus, ActorRole))

TERMINAL = [
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.REJECTED,
]


def _decide(src, dst, role, now=AFTER_SLOT, evidence=True):
    return BookingStateMachine.decide(
        src, dst, role, now, SCHEDULED_AT, evidence_supplied=evidence
    )


# ---------------------
# VALID TRANSITIONS
# ---------------------

@pytest.mark.parametrize("src,dst,role", sorted(LEGAL, key=str))
def test_every_legal_edge_is_accepted(src, dst, role):
    decision = _decide(src, dst, role)

    assert decision.accepted
    assert decision.reason is None


def test_valid_happy_path():
    assert BookingStateMachine.can_transition(
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
    )

    assert BookingStateMachine.can_transition(
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
    )

    assert BookingStateMachine.can_transition(
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
    )


# ---------------------
# INVALID TRANSITIONS
# ---------------------

@pytest.mark.parametrize(
    "src,dst,role",
    [triple for triple in ALL_TRIPLES if triple not in LEGAL],
)
def test_every_other_triple_is_rejected_with_a_specific_reason(src, dst, role):
    first = _decide(src, dst, role)
    second = _decide(src, dst, role)

    expected = (
        RejectionReason.FORBIDDEN
        if (src, dst) in EDGES
        else RejectionReason.INVALID_TRANSITION
    )
    assert not first.accepted
    assert first.reason is expected
    assert second == first


@pytest.mark.parametrize("status", list(BookingStatus))
def test_self_transitions_are_invalid(status):
    assert _decide(status, status, PROVIDER).reason is RejectionReason.INVALID_TRANSITION


def test_cannot_skip_confirmation():
    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(
            BookingStatus.PENDING,
            BookingStatus.IN_PROGRESS,
            PROVIDER,
            AFTER_SLOT,
            SCHEDULED_AT,
        )


def test_customer_cannot_confirm():
    with pytest.raises(ForbiddenError):
        BookingStateMachine.validate_transition(
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            CUSTOMER,
            AFTER_SLOT,
            SCHEDULED_AT,
        )


# ---------------------
# TERMINAL STATES
# ---------------------

@pytest.mark.parametrize(
    "src,dst,role",
    list(product(TERMINAL, BookingStatus, ActorRole)),
)
def test_terminal_states_reject_everything(src, dst, role):
    assert BookingStateMachine.is_terminal(src)
    assert _decide(src, dst, role).reason is RejectionReason.INVALID_TRANSITION

    with pytest.raises(InvalidStateTransitionError):
        BookingStateMachine.validate_transition(src, dst, role, AFTER_SLOT, SCHEDULED_AT, True)


@pytest.mark.parametrize(
    "status",
    [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS],
)
def test_active_states_are_not_terminal(status):
    assert not BookingStateMachine.is_terminal(status)


# ---------------------
# TIME GATE
# ---------------------

@pytest.mark.parametrize(
    "offset",
    [timedelta(days=-1), timedelta(minutes=-1), timedelta(microseconds=-1)],
)
def test_in_progress_before_slot_is_too_early(offset):
    decision = _decide(
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
        PROVIDER,
        now=SCHEDULED_AT + offset,
    )

    assert decision.reason is RejectionReason.TOO_EARLY
    assert isinstance(decision.to_error(), TooEarlyError)


@pytest.mark.parametrize(
    "offset",
    [timedelta(0), timedelta(seconds=1), timedelta(days=3)],
)
def test_in_progress_at_or_after_slot_is_accepted(offset):
    decision = _decide(
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
        PROVIDER,
        now=SCHEDULED_AT + offset,
    )

    assert decision.accepted


def test_cancel_is_not_time_gated():
    decision = _decide(
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        CUSTOMER,
        now=SCHEDULED_AT - timedelta(days=2),
    )

    assert decision.accepted


# ---------------------
# EVIDENCE GATE
# ---------------------

def test_completion_without_evidence_is_rejected():
    decision = _decide(
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
        PROVIDER,
        evidence=False,
    )

    assert decision.reason is RejectionReason.EVIDENCE_REQUIRED

    with pytest.raises(EvidenceRequiredError):
        BookingStateMachine.validate_transition(
            BookingStatus.IN_PROGRESS,
            BookingStatus.COMPLETED,
            PROVIDER,
            AFTER_SLOT,
            SCHEDULED_AT,
        )


def test_role_is_checked_before_evidence():
    decision = _decide(
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
        CUSTOMER,
        evidence=False,
    )

    assert decision.reason is RejectionReason.FORBIDDEN


# ---------------------
# QUERIES & GUARDS
# ---------------------

def test_allowed_transitions_narrowed_by_role():
    assert BookingStateMachine.get_allowed_transitions(BookingStatus.PENDING) == {
        BookingStatus.CONFIRMED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    }
    assert BookingStateMachine.get_allowed_transitions(
        BookingStatus.PENDING, CUSTOMER
    ) == {BookingStatus.CANCELLED}
    assert BookingStateMachine.get_allowed_transitions(BookingStatus.COMPLETED) == set()


def test_deletable_statuses():
    deletable = {
        status for status in BookingStatus if BookingStateMachine.is_deletable(status)
    }

    assert deletable == {
        BookingStatus.PENDING,
        BookingStatus.CANCELLED,
        BookingStatus.REJECTED,
    }


def test_invalid_type_guard():
    with pytest.raises(TypeError):
        BookingStateMachine.validate_transition(
            "PENDING",  # invalid type
            BookingStatus.CONFIRMED,
            PROVIDER,
            AFTER_SLOT,
            SCHEDULED_AT,
        )


def test_invalid_role_type_guard():
    with pytest.raises(TypeError):
        BookingStateMachine.decide(
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            "provider",  # invalid type
            AFTER_SLOT,
            SCHEDULED_AT,
        )
