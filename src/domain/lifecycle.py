"""Lifecycle state machines for map controllers and mount points.

This module provides:
- ControllerState / MountState: the lifecycle states
- ControllerLifecycleMixin: state tracking with transition validation
- LifecycleError / InvalidStateTransitionError

Controller lifecycle::

    CONSTRUCTING -> ATTACHED -> (DETACHING -> POOLED -> ATTACHED)* -> DESTROYED

DESTROYED is terminal. POOLED is only reachable from ATTACHED (via DETACHING).

Mount point lifecycle::

    UNMOUNTED -> LOADING -> MOUNTED -> UNMOUNTED
                        \\-> FAILED -> LOADING (retry)
"""

from __future__ import annotations

import logging
from enum import Enum, auto

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    """Map controller lifecycle states."""

    CONSTRUCTING = auto()  # Engine map being created
    ATTACHED = auto()  # Bound to a mount point, receiving props
    DETACHING = auto()  # Recycle in progress
    POOLED = auto()  # Detached, waiting in the instance pool
    DESTROYED = auto()  # Engine map removed


class MountState(Enum):
    """Mount point lifecycle states."""

    UNMOUNTED = auto()
    LOADING = auto()  # Engine module being acquired
    MOUNTED = auto()  # Controller attached
    FAILED = auto()  # Construction failed, retry possible


class LifecycleError(Exception):
    """Raised when lifecycle operations fail."""

    def __init__(self, message: str, current_state: Enum | None = None) -> None:
        self.current_state = current_state
        full_message = message
        if current_state is not None:
            full_message = f"{message} (current state: {current_state.name})"
        super().__init__(full_message)


class InvalidStateTransitionError(LifecycleError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        from_state: Enum,
        to_state: Enum,
        message: str | None = None,
    ) -> None:
        self.from_state = from_state
        self.to_state = to_state
        default_message = f"Invalid state transition: {from_state.name} -> {to_state.name}"
        super().__init__(message or default_message, from_state)


# Valid state transitions
CONTROLLER_TRANSITIONS: dict[ControllerState, set[ControllerState]] = {
    ControllerState.CONSTRUCTING: {ControllerState.ATTACHED, ControllerState.DESTROYED},
    ControllerState.ATTACHED: {ControllerState.DETACHING, ControllerState.DESTROYED},
    ControllerState.DETACHING: {ControllerState.POOLED, ControllerState.DESTROYED},
    ControllerState.POOLED: {ControllerState.ATTACHED, ControllerState.DESTROYED},
    ControllerState.DESTROYED: set(),  # Terminal state
}

MOUNT_TRANSITIONS: dict[MountState, set[MountState]] = {
    MountState.UNMOUNTED: {MountState.LOADING},
    MountState.LOADING: {MountState.MOUNTED, MountState.FAILED, MountState.UNMOUNTED},
    MountState.MOUNTED: {MountState.UNMOUNTED, MountState.FAILED},
    MountState.FAILED: {MountState.LOADING, MountState.UNMOUNTED},
}


def check_transition(
    transitions: dict,
    current: Enum,
    new_state: Enum,
) -> None:
    """Validate a transition against a transition table.

    Raises
    ------
    InvalidStateTransitionError
        If the transition is not allowed
    """
    if new_state not in transitions.get(current, set()):
        raise InvalidStateTransitionError(current, new_state)


class ControllerLifecycleMixin:
    """Mixin providing controller state tracking.

    Example
    -------
    >>> class MyController(ControllerLifecycleMixin):
    ...     def __init__(self) -> None:
    ...         super().__init__()
    ...         self._transition_to(ControllerState.ATTACHED)
    """

    def __init__(self) -> None:
        self._state: ControllerState = ControllerState.CONSTRUCTING

    @property
    def state(self) -> ControllerState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_destroyed(self) -> bool:
        return self._state is ControllerState.DESTROYED

    def _transition_to(self, new_state: ControllerState) -> None:
        """Transition to a new state with validation.

        Raises
        ------
        InvalidStateTransitionError
            If the transition is not allowed
        """
        check_transition(CONTROLLER_TRANSITIONS, self._state, new_state)

        old_state = self._state
        self._state = new_state
        logger.debug(
            "[%s] State transition: %s -> %s",
            self.__class__.__name__,
            old_state.name,
            new_state.name,
        )


__all__ = [
    "CONTROLLER_TRANSITIONS",
    "ControllerLifecycleMixin",
    "ControllerState",
    "InvalidStateTransitionError",
    "LifecycleError",
    "MOUNT_TRANSITIONS",
    "MountState",
    "check_transition",
]
