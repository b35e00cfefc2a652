"""Unit tests for lopen_memory/core/state_machine.py."""

import itertools

import pytest

from lopen_memory.core.errors import InvalidArgumentError, UserInputError
from lopen_memory.core.state_machine import (
    ALLOWED_TRANSITIONS,
    InvalidTransitionError,
    LifecycleState,
    can_transition,
    get_allowed_transitions,
    parse_state,
    validate_transition,
)

ALL_PAIRS = list(itertools.product(LifecycleState, LifecycleState))


class TestLifecycleState:
    """Tests for LifecycleState enum."""

    def test_all_states_exist(self):
        expected = {"Draft", "Planning", "Building", "Complete", "Amending"}
        assert {s.value for s in LifecycleState} == expected

    def test_state_is_string(self):
        """LifecycleState should serialize as string."""
        assert LifecycleState.DRAFT == "Draft"
        assert LifecycleState.BUILDING.value == "Building"


class TestCanTransition:
    """Tests for can_transition function."""

    def test_draft_to_planning(self):
        assert can_transition(LifecycleState.DRAFT, LifecycleState.PLANNING) is True

    def test_draft_to_building_not_allowed(self):
        """Can't skip Planning."""
        assert can_transition(LifecycleState.DRAFT, LifecycleState.BUILDING) is False

    def test_planning_to_building(self):
        assert can_transition(LifecycleState.PLANNING, LifecycleState.BUILDING) is True

    def test_building_to_complete(self):
        assert can_transition(LifecycleState.BUILDING, LifecycleState.COMPLETE) is True

    def test_complete_to_amending(self):
        assert can_transition(LifecycleState.COMPLETE, LifecycleState.AMENDING) is True

    def test_amending_only_returns_to_draft(self):
        assert can_transition(LifecycleState.AMENDING, LifecycleState.DRAFT) is True
        assert can_transition(LifecycleState.AMENDING, LifecycleState.BUILDING) is False
        assert can_transition(LifecycleState.AMENDING, LifecycleState.COMPLETE) is False

    def test_every_state_can_return_to_draft(self):
        """There is no terminal state."""
        for state in LifecycleState:
            assert can_transition(state, LifecycleState.DRAFT) is True

    def test_same_state_is_allowed(self):
        """Requesting the current state again is a no-op, not an error."""
        for state in LifecycleState:
            assert can_transition(state, state) is True

    def test_complete_cannot_go_back_to_building(self):
        assert can_transition(LifecycleState.COMPLETE, LifecycleState.BUILDING) is False

    @pytest.mark.parametrize("current,target", ALL_PAIRS)
    def test_matches_transition_table(self, current, target):
        expected = current == target or target in ALLOWED_TRANSITIONS[current]
        assert can_transition(current, target) is expected


class TestValidateTransition:
    """Tests for validate_transition function."""

    def test_valid_transition_no_error(self):
        validate_transition(LifecycleState.DRAFT, LifecycleState.PLANNING)

    def test_invalid_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(LifecycleState.DRAFT, LifecycleState.COMPLETE)

        assert exc_info.value.current == LifecycleState.DRAFT
        assert exc_info.value.target == LifecycleState.COMPLETE
        assert "Draft -> Complete" in str(exc_info.value)

    def test_error_lists_allowed_targets(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(LifecycleState.BUILDING, LifecycleState.PLANNING)

        assert "Complete, Draft" in str(exc_info.value)

    def test_invalid_transition_is_user_input_error(self):
        with pytest.raises(UserInputError):
            validate_transition(LifecycleState.AMENDING, LifecycleState.COMPLETE)


class TestGetAllowedTransitions:
    """Tests for get_allowed_transitions function."""

    def test_from_planning(self):
        allowed = get_allowed_transitions(LifecycleState.PLANNING)
        assert allowed == {LifecycleState.BUILDING, LifecycleState.DRAFT}

    def test_returns_copy(self):
        """Should return a copy, not the original set."""
        allowed = get_allowed_transitions(LifecycleState.DRAFT)
        allowed.add(LifecycleState.COMPLETE)

        assert LifecycleState.COMPLETE not in ALLOWED_TRANSITIONS[LifecycleState.DRAFT]


class TestParseState:
    """Tests for parse_state function."""

    def test_exact_value(self):
        assert parse_state("Building") == LifecycleState.BUILDING

    def test_case_insensitive(self):
        assert parse_state("planning") == LifecycleState.PLANNING
        assert parse_state("AMENDING") == LifecycleState.AMENDING

    def test_strips_whitespace(self):
        assert parse_state("  Draft ") == LifecycleState.DRAFT

    def test_accepts_enum(self):
        assert parse_state(LifecycleState.COMPLETE) is LifecycleState.COMPLETE

    def test_invalid_raises_invalid_argument(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_state("Done")

        assert "Valid states" in str(exc_info.value)
