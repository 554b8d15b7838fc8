from __future__ import annotations
"""Status transition guard.

    ORDER_FSM = TransitionValidator({
        'PENDING': {'CONFIRMED', 'CANCELLED'},
        'CONFIRMED': {'PROCESSING', 'CANCELLED'},
        ...
    })
    ORDER_FSM.assert_can_transition(order.status, target)

Aborts 400 on a transition missing from the graph.
"""
from typing import Dict, Set
from flask import abort


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(400, description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True


__all__ = ['TransitionValidator']
