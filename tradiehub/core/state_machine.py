"""
Status Transition Validation

A small immutable finite state machine. Each domain module declares its
own transition table and builds one StateMachine from it.
"""
from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Generic, TypeVar

from tradiehub.core.exceptions import InvalidTransitionError

S = TypeVar("S", bound=Enum)


class StateMachine(Generic[S]):
    """Legal-transition table for one status enum."""

    def __init__(self, name: str, transitions: Mapping[S, Iterable[S]]):
        self.name = name
        self._transitions: Mapping[S, frozenset[S]] = MappingProxyType(
            {state: frozenset(targets) for state, targets in transitions.items()}
        )

    def _coerce(self, state: S | str) -> S:
        if isinstance(state, str) and not isinstance(state, Enum):
            enum_type = type(next(iter(self._transitions)))
            return enum_type(state)
        return state  # type: ignore[return-value]

    def can_transition(self, current: S | str, requested: S | str) -> bool:
        """True when `requested` is a direct successor of `current`."""
        try:
            current_state = self._coerce(current)
            requested_state = self._coerce(requested)
        except ValueError:
            return False
        return requested_state in self._transitions.get(current_state, frozenset())

    def next_valid_states(self, current: S | str) -> frozenset[S]:
        return self._transitions.get(self._coerce(current), frozenset())

    def is_terminal(self, state: S | str) -> bool:
        return not self.next_valid_states(state)

    def validate(self, current: S | str, requested: S | str) -> S:
        """Return the requested state or raise InvalidTransitionError naming the pair."""
        if not self.can_transition(current, requested):
            raise InvalidTransitionError(
                self.name,
                getattr(current, "value", str(current)),
                getattr(requested, "value", str(requested)),
            )
        return self._coerce(requested)

    def validate_path(self, current: S | str, *path: S | str) -> S:
        """Validate a chain of hops (e.g. submitted -> under_review -> selected)."""
        state = current
        for step in path:
            state = self.validate(state, step)
        return self._coerce(state)
