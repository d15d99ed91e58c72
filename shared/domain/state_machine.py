"""
Finite State Machine helper

Each lifecycle declares its transitions once as a table. Every status
change goes through ``StateMachine.ensure`` so unlisted moves are rejected
the same way everywhere.
"""

from enum import Enum
from typing import Generic, Iterable, Mapping, TypeVar

from shared.domain.exceptions import InvalidStateTransition

S = TypeVar('S', bound=Enum)


class StateMachine(Generic[S]):
    """
    Transition table over an Enum of states

    The table must mention every member of the enum, terminal states
    mapping to an empty set, otherwise construction fails.
    """

    def __init__(self, name: str, states: type[S], transitions: Mapping[S, Iterable[S]]):
        missing = set(states) - set(transitions)
        if missing:
            raise ValueError(
                f"{name} transition table is missing states: "
                f"{sorted(state.value for state in missing)}"
            )
        self.name = name
        self.states = states
        self._transitions = {state: frozenset(targets) for state, targets in transitions.items()}

    def allowed_targets(self, current: S) -> frozenset:
        return self._transitions[self.states(current)]

    def can_transition(self, current: S, target: S) -> bool:
        return self.states(target) in self.allowed_targets(current)

    def ensure(self, current: S, target: S) -> S:
        """Return ``target`` as a member of the enum or raise InvalidStateTransition"""
        current = self.states(current)
        target = self.states(target)
        if target not in self._transitions[current]:
            raise InvalidStateTransition(
                f"{self.name}: cannot move from {current.value} to {target.value}",
                current=current.value,
                target=target.value,
            )
        return target

    def is_terminal(self, state: S) -> bool:
        return not self._transitions[self.states(state)]
