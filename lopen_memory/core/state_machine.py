"""Lifecycle state machine for lopen-memory.

Defines the lifecycle states shared by modules, features and tasks,
and the transitions allowed between them.

States:
- Draft: Initial state for every new item
- Planning: The item is being designed
- Building: The item is being implemented
- Complete: The item is finished
- Amending: A completed item is being revised

There is no terminal state: every state can return to Draft.
Projects do not use this machine; they carry a completed flag instead.

This module is headless - no CLI dependencies.
"""

from enum import Enum
from typing import Set

from lopen_memory.core.errors import InvalidArgumentError, UserInputError


class LifecycleState(str, Enum):
    """Lifecycle state of a module, feature or task.

    Uses str mixin for easy JSON serialization and SQLite storage.
    """

    DRAFT = "Draft"
    PLANNING = "Planning"
    BUILDING = "Building"
    COMPLETE = "Complete"
    AMENDING = "Amending"


# Allowed state transitions (from -> set of allowed targets)
ALLOWED_TRANSITIONS: dict[LifecycleState, Set[LifecycleState]] = {
    LifecycleState.DRAFT: {LifecycleState.PLANNING, LifecycleState.DRAFT},
    LifecycleState.PLANNING: {LifecycleState.BUILDING, LifecycleState.DRAFT},
    LifecycleState.BUILDING: {LifecycleState.COMPLETE, LifecycleState.DRAFT},
    LifecycleState.COMPLETE: {LifecycleState.AMENDING, LifecycleState.DRAFT},
    LifecycleState.AMENDING: {LifecycleState.DRAFT},
}


class InvalidTransitionError(UserInputError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, current: LifecycleState, target: LifecycleState):
        self.current = current
        self.target = target
        allowed = sorted(s.value for s in ALLOWED_TRANSITIONS.get(current, set()))
        allowed_str = ", ".join(allowed) if allowed else "none"
        super().__init__(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Allowed transitions from {current.value}: {allowed_str}"
        )


def can_transition(current: LifecycleState, target: LifecycleState) -> bool:
    """Check if a state transition is allowed.

    Requesting the current state again is always allowed (it is a no-op).

    Args:
        current: Current lifecycle state
        target: Desired target state

    Returns:
        True if transition is allowed, False otherwise
    """
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, set())


def validate_transition(current: LifecycleState, target: LifecycleState) -> None:
    """Validate a state transition, raising if invalid.

    Args:
        current: Current lifecycle state
        target: Desired target state

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def get_allowed_transitions(current: LifecycleState) -> Set[LifecycleState]:
    """Get the set of states that can be transitioned to from current.

    Returns a copy of the transition table entry.
    """
    return ALLOWED_TRANSITIONS.get(current, set()).copy()


def parse_state(value: str) -> LifecycleState:
    """Parse a string into a LifecycleState.

    Matching is case-insensitive, so "building", "Building" and
    "BUILDING" are all accepted.

    Raises:
        InvalidArgumentError: If the string doesn't match any state
    """
    if isinstance(value, LifecycleState):
        return value
    normalized = value.strip().lower()
    for state in LifecycleState:
        if state.value.lower() == normalized:
            return state
    valid = ", ".join(s.value for s in LifecycleState)
    raise InvalidArgumentError(f"Invalid state '{value}'. Valid states: {valid}")
