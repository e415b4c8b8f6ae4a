"""Tests for the booking status state machine."""

import pytest

from shootmatch.engine.state_machine import BookingStateMachine, BookingTrigger
from shootmatch.errors import ConflictError, InvalidTransitionError
from shootmatch.schemas.booking_schema import BookingStatus


@pytest.fixture
def state_machine():
    return BookingStateMachine()


class TestDraftCompletion:
    def test_draft_to_pending(self, state_machine):
        new = state_machine.next_status(BookingStatus.DRAFT, BookingTrigger.DRAFT_FINALIZED_PENDING)
        assert new == BookingStatus.PENDING

    def test_draft_to_confirmed(self, state_machine):
        new = state_machine.next_status(BookingStatus.DRAFT, BookingTrigger.DRAFT_FINALIZED_CONFIRMED)
        assert new == BookingStatus.CONFIRMED

    def test_draft_cannot_be_cancelled(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.next_status(BookingStatus.DRAFT, BookingTrigger.CANCELLED)


class TestHappyPath:
    def test_pending_to_confirmed(self, state_machine):
        new = state_machine.next_status(BookingStatus.PENDING, BookingTrigger.PAYMENT_CONFIRMED)
        assert new == BookingStatus.CONFIRMED

    def test_confirmed_to_executed(self, state_machine):
        new = state_machine.next_status(BookingStatus.CONFIRMED, BookingTrigger.SESSION_EXECUTED)
        assert new == BookingStatus.EXECUTED

    def test_executed_to_delivered(self, state_machine):
        new = state_machine.next_status(BookingStatus.EXECUTED, BookingTrigger.MATERIAL_DELIVERED)
        assert new == BookingStatus.DELIVERED

    def test_pending_cannot_skip_to_executed(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.next_status(BookingStatus.PENDING, BookingTrigger.SESSION_EXECUTED)


class TestCancellation:
    @pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED])
    def test_cancellable(self, state_machine, status):
        assert state_machine.next_status(status, BookingTrigger.CANCELLED) == BookingStatus.CANCELLED

    @pytest.mark.parametrize(
        "status", [BookingStatus.EXECUTED, BookingStatus.DELIVERED, BookingStatus.CANCELLED]
    )
    def test_not_cancellable(self, state_machine, status):
        assert not state_machine.can_transition(status, BookingTrigger.CANCELLED)


class TestTerminalStates:
    def test_delivered_is_terminal(self, state_machine):
        assert state_machine.is_terminal(BookingStatus.DELIVERED)

    def test_cancelled_is_terminal(self, state_machine):
        assert state_machine.is_terminal(BookingStatus.CANCELLED)

    def test_confirmed_is_not_terminal(self, state_machine):
        assert not state_machine.is_terminal(BookingStatus.CONFIRMED)

    def test_no_way_back_from_delivered(self, state_machine):
        for trigger in BookingTrigger:
            assert not state_machine.can_transition(BookingStatus.DELIVERED, trigger)


class TestErrors:
    def test_error_lists_valid_triggers(self, state_machine):
        with pytest.raises(InvalidTransitionError, match="session_executed"):
            state_machine.next_status(BookingStatus.CONFIRMED, BookingTrigger.PAYMENT_CONFIRMED)

    def test_invalid_transition_is_conflict(self, state_machine):
        with pytest.raises(ConflictError) as exc:
            state_machine.next_status(BookingStatus.CANCELLED, BookingTrigger.PAYMENT_CONFIRMED)
        assert exc.value.code == "INVALID_TRANSITION"

    def test_valid_triggers_from_confirmed(self, state_machine):
        assert set(state_machine.valid_triggers(BookingStatus.CONFIRMED)) == {
            BookingTrigger.SESSION_EXECUTED,
            BookingTrigger.CANCELLED,
        }
