"""Central permission codes and role presets.

Tokens carry the expanded permission list in their ``perms`` claim; routes check codes,
never role names. Add codes here rather than spelling strings inline.
"""
from __future__ import annotations
from typing import Dict, List

SERVICE_ACTIONS = {
    'ORDERS': ['READ', 'CREATE', 'STATUS', 'ARCHIVE', 'DELETE', 'STATS', 'HISTORY'],
    'REPORTS': ['READ'],
    'SETTINGS': ['MANAGE'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    'owner': ['*'],
    'staff': [
        'ORDERS.READ', 'ORDERS.CREATE', 'ORDERS.STATUS', 'ORDERS.ARCHIVE', 'ORDERS.DELETE', 'ORDERS.STATS',
        'REPORTS.READ',
    ],
    # kitchen works the board: read and move orders, nothing else
    'kitchen': ['ORDERS.READ', 'ORDERS.STATUS'],
}


def permissions_for_role(role: str) -> List[str]:
    codes = ROLE_PRESETS.get(role, [])
    if '*' in codes:
        return list(ALL_PERMISSION_CODES)
    return sorted(codes)
