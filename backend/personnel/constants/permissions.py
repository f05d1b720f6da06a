"""Central permission definitions to avoid typos in permission strings.
Extend cautiously; never rename codes silently, add new ones and migrate role assignments.
"""
from __future__ import annotations
from typing import Dict, List

SERVICE_ACTIONS: Dict[str, List[str]] = {
    'employees': ['view', 'edit', 'rank', 'terminate'],
    'units': ['manage'],
    'hr': ['view', 'manage'],
    'academy': ['view', 'manage'],
    'uprank': ['request', 'process'],
    'treasury': ['view', 'manage'],
    'sanctions': ['view', 'manage'],
    'bonus': ['view', 'manage'],
    'audit': ['view'],
    'admin': ['roles', 'full'],
}

EMPLOYEES_VIEW = 'employees.view'
EMPLOYEES_EDIT = 'employees.edit'
EMPLOYEES_RANK = 'employees.rank'
EMPLOYEES_TERMINATE = 'employees.terminate'
UNITS_MANAGE = 'units.manage'
HR_VIEW = 'hr.view'
HR_MANAGE = 'hr.manage'
ACADEMY_VIEW = 'academy.view'
ACADEMY_MANAGE = 'academy.manage'
UPRANK_REQUEST = 'uprank.request'
UPRANK_PROCESS = 'uprank.process'
TREASURY_VIEW = 'treasury.view'
TREASURY_MANAGE = 'treasury.manage'
SANCTIONS_VIEW = 'sanctions.view'
SANCTIONS_MANAGE = 'sanctions.manage'
BONUS_VIEW = 'bonus.view'
BONUS_MANAGE = 'bonus.manage'
AUDIT_VIEW = 'audit.view'
ADMIN_ROLES = 'admin.roles'
# Satisfies every permission check.
ADMIN_FULL = 'admin.full'


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    'Officer': [EMPLOYEES_VIEW, ACADEMY_VIEW],
    'Human Resources': [EMPLOYEES_VIEW, HR_VIEW, HR_MANAGE, BONUS_VIEW],
    'Academy Instructor': [EMPLOYEES_VIEW, ACADEMY_VIEW, ACADEMY_MANAGE, UPRANK_REQUEST],
    'Team Lead': [EMPLOYEES_VIEW, EMPLOYEES_EDIT, UNITS_MANAGE, UPRANK_REQUEST, ACADEMY_VIEW],
    'Internal Affairs': [EMPLOYEES_VIEW, SANCTIONS_VIEW, SANCTIONS_MANAGE],
    'Finance': [TREASURY_VIEW, TREASURY_MANAGE, BONUS_VIEW, BONUS_MANAGE],
    # Management: broad operational authority (every area except role administration)
    'Management': [
        EMPLOYEES_VIEW, EMPLOYEES_EDIT, EMPLOYEES_RANK, EMPLOYEES_TERMINATE, UNITS_MANAGE,
        HR_VIEW, HR_MANAGE, ACADEMY_VIEW, ACADEMY_MANAGE, UPRANK_REQUEST, UPRANK_PROCESS,
        TREASURY_VIEW, SANCTIONS_VIEW, SANCTIONS_MANAGE, BONUS_VIEW, AUDIT_VIEW,
    ],
    'Administrator': ['*'],
}
