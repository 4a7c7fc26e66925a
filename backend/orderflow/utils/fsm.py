"""Small status workflow helper.

A workflow is a closed set of states plus the default forward chain used by the
"advance" affordance. Any member state may still be forced through ``validate`` +
a direct write; the chain is the default path, not an enforced graph.

Usage:
    from orderflow.utils.fsm import StatusWorkflow
    KITCHEN_FLOW = StatusWorkflow(
        ('PENDING', 'STARTED', 'READY'),
        {'PENDING': 'STARTED', 'STARTED': 'READY'},
    )
    KITCHEN_FLOW.next_status('PENDING')   # 'STARTED'
    KITCHEN_FLOW.validate('BOGUS')        # raises InvalidStatus
"""
from __future__ import annotations
from typing import Any, Dict, Optional, Sequence
from orderflow.errors import InvalidStatus


class StatusWorkflow:
    def __init__(self, states: Sequence[str], forward: Dict[str, str], field_name: str = 'status'):
        unknown = (set(forward) | set(forward.values())) - set(states)
        if unknown:
            raise ValueError(f"forward chain references unknown states {sorted(unknown)}")
        self.states = tuple(states)
        self.forward = dict(forward)
        self.field_name = field_name

    def next_status(self, current: str) -> Optional[str]:
        return self.forward.get(current)

    def is_terminal(self, current: str) -> bool:
        return current not in self.forward

    def validate(self, value: Any) -> str:
        if not isinstance(value, str) or value not in self.states:
            raise InvalidStatus(
                f"Invalid {self.field_name} {value!r}. Valid {self.field_name} values: {', '.join(self.states)}"
            )
        return value

__all__ = ['StatusWorkflow']
