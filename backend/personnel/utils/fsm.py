from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Used by the stateful records (Application, UprankRequest, Sanction, Employee).
Usage:
    from personnel.utils.fsm import TransitionValidator
    SANCTION_FSM = TransitionValidator({
        'ACTIVE': {'REVOKED'},
        'REVOKED': set(),
    })
    SANCTION_FSM.assert_can_transition(current_status, target_status)

Raises InvalidStateTransitionError if invalid.
"""
from typing import Dict, Iterable, Set
from personnel.errors import InvalidStateTransitionError

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise InvalidStateTransitionError(
                f"Invalid {self.field_name} transition {current} -> {target}",
                current=current, target=target,
            )
        return True

    def is_terminal(self, state: str) -> bool:
        return not self.graph.get(state)

    def states(self) -> Iterable[str]:
        return list(self.graph.keys())

__all__ = ['TransitionValidator']
