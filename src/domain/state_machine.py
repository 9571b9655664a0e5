"""
Finite-state machine shared by rides and matches.

A ``TransitionTable`` wraps a ``(state, event) -> next_state`` mapping.
Both lifecycles go through the same class so a new transition can only
be introduced by editing the table in ``enums.py``.
"""

from __future__ import annotations

from typing import Generic, Mapping, TypeVar

from .enums import MATCH_TRANSITIONS, RIDE_TRANSITIONS, MatchEvent, MatchStatus, RideEvent, RideStatus
from .errors import InvalidTransition

S = TypeVar("S")
E = TypeVar("E")


class TransitionTable(Generic[S, E]):
    def __init__(self, name: str, transitions: Mapping[tuple[S, E], S]):
        self.name = name
        self._transitions = dict(transitions)

    def next_state(self, state: S, event: E) -> S:
        """Return the state reached by *event*, else raise ``InvalidTransition``."""
        try:
            return self._transitions[(state, event)]
        except KeyError:
            raise InvalidTransition(
                f"{self.name}: cannot '{_label(event)}' from {_label(state)}"
            ) from None

    def can(self, state: S, event: E) -> bool:
        return (state, event) in self._transitions

    def allowed_events(self, state: S) -> set[E]:
        return {e for (s, e) in self._transitions if s == state}

    def is_terminal(self, state: S) -> bool:
        return not self.allowed_events(state)


def _label(value) -> str:
    return getattr(value, "value", str(value))


RIDE_MACHINE: TransitionTable[RideStatus, RideEvent] = TransitionTable(
    "ride", RIDE_TRANSITIONS
)
MATCH_MACHINE: TransitionTable[MatchStatus, MatchEvent] = TransitionTable(
    "match", MATCH_TRANSITIONS
)
