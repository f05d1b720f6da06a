"""Centralized constants for the OpenAPI spec builder.

Tests depend on deterministic ordering and content; every path listed here exists
as a blueprint route.
"""
from typing import Dict, List, Optional, Tuple

from personnel.constants import permissions as P

# Entity registry: (SchemaName, collection path, id param or None for list-only collections)
ENTITIES: List[Tuple[str, str, Optional[str]]] = [
    ("Employee", "/employees", "employee_id"),
    ("Application", "/hr/applications", "application_id"),
    ("BlacklistEntry", "/hr/blacklist", None),
    ("AcademyModule", "/academy/modules", None),
    ("UprankRequest", "/uprank/requests", "request_id"),
    ("UprankLock", "/uprank/locks", None),
    ("TreasuryTransaction", "/treasury/transactions", None),
    ("Sanction", "/sanctions", "sanction_id"),
    ("BonusPayment", "/bonus/payments", None),
    ("Role", "/iam/roles", None),
    ("Permission", "/iam/permissions", None),
    ("AuditLog", "/iam/audit-logs", None),
]

# Permission checked by the list / single GET endpoints of each entity.
READ_PERMISSIONS: Dict[str, List[str]] = {
    "Employee": [P.EMPLOYEES_VIEW],
    "Application": [P.HR_VIEW],
    "BlacklistEntry": [P.HR_VIEW],
    "AcademyModule": [P.ACADEMY_VIEW],
    "UprankRequest": [P.UPRANK_REQUEST, P.UPRANK_PROCESS],
    "UprankLock": [P.UPRANK_REQUEST, P.UPRANK_PROCESS],
    "TreasuryTransaction": [P.TREASURY_VIEW],
    "Sanction": [P.SANCTIONS_VIEW],
    "BonusPayment": [P.BONUS_VIEW],
    "Role": [P.ADMIN_ROLES],
    "Permission": [P.ADMIN_ROLES],
    "AuditLog": [P.AUDIT_VIEW],
}

# State-changing endpoints under a single resource: {single}/{action}.
ACTION_REGISTRY: Dict[str, List[Dict[str, str]]] = {
    "Employee": [
        {"action": "promote", "method": "post", "summary": "Promote one rank level", "permission": P.EMPLOYEES_RANK},
        {"action": "demote", "method": "post", "summary": "Demote one rank level", "permission": P.EMPLOYEES_RANK},
        {"action": "badge", "method": "put", "summary": "Assign badge number", "permission": P.EMPLOYEES_RANK},
        {"action": "status", "method": "patch", "summary": "Change employee status", "permission": P.EMPLOYEES_EDIT},
        {"action": "terminate", "method": "post", "summary": "Terminate employee", "permission": P.EMPLOYEES_TERMINATE},
        {"action": "units", "method": "put", "summary": "Replace unit roles", "permission": P.UNITS_MANAGE},
    ],
    "Application": [
        {"action": "criteria", "method": "post", "summary": "Submit criteria answers", "permission": P.HR_MANAGE},
        {"action": "questions", "method": "post", "summary": "Submit answered questions", "permission": P.HR_MANAGE},
        {"action": "onboarding", "method": "post", "summary": "Submit onboarding checklist", "permission": P.HR_MANAGE},
        {"action": "complete", "method": "post", "summary": "Complete application and hire", "permission": P.HR_MANAGE},
        {"action": "reject", "method": "post", "summary": "Reject application", "permission": P.HR_MANAGE},
        {"action": "id-card", "method": "put", "summary": "Upload ID card", "permission": P.HR_MANAGE},
    ],
    "UprankRequest": [
        {"action": "process", "method": "post", "summary": "Approve or reject uprank request", "permission": P.UPRANK_PROCESS},
    ],
    "Sanction": [
        {"action": "revoke", "method": "post", "summary": "Revoke sanction", "permission": P.SANCTIONS_MANAGE},
    ],
}

# Other mutating endpoints: path -> (method, summary, permissions)
OPERATIONS: Dict[str, Tuple[str, str, List[str]]] = {
    "/hr/applications": ("post", "Create application", [P.HR_MANAGE]),
    "/hr/blacklist": ("post", "Add blacklist entry", [P.HR_MANAGE]),
    "/hr/invites": ("post", "Create onboarding invite", [P.HR_MANAGE]),
    "/academy/modules": ("post", "Create academy module", [P.ACADEMY_MANAGE]),
    "/academy/employees/{employee_id}/modules/{module_id}/toggle": ("post", "Toggle module completion", [P.ACADEMY_MANAGE]),
    "/academy/employees/{employee_id}/uprank-request": ("post", "Request academy uprank", [P.ACADEMY_MANAGE, P.UPRANK_REQUEST]),
    "/uprank/requests": ("post", "Create uprank request", [P.UPRANK_REQUEST]),
    "/uprank/locks": ("post", "Create uprank lock", [P.UPRANK_PROCESS]),
    "/treasury/deposit": ("post", "Deposit into a pool", [P.TREASURY_MANAGE]),
    "/treasury/withdraw": ("post", "Withdraw from a pool", [P.TREASURY_MANAGE]),
    "/sanctions": ("post", "Create sanction", [P.SANCTIONS_MANAGE]),
    "/sanctions/{sanction_id}/components/{component}/toggle": ("post", "Toggle component completion", [P.SANCTIONS_MANAGE]),
    "/bonus/payments/mark-paid": ("post", "Mark bonus payments paid", [P.BONUS_MANAGE]),
    "/bonus/weeks/close": ("post", "Close bonus week", [P.BONUS_MANAGE]),
    "/iam/roles": ("post", "Create role", [P.ADMIN_ROLES]),
}

SORT_PARAM_MAP = {
    "Employee": "SortEmployeesParam",
    "Application": "SortApplicationsParam",
    "AcademyModule": "SortModulesParam",
    "UprankRequest": "SortUprankRequestsParam",
    "Sanction": "SortSanctionsParam",
    "Role": "SortRolesParam",
    "Permission": "SortPermissionsParam",
}

SORT_DETAILS = {
    "SortEmployeesParam": "Multi-field sort (rank_level,badge_number,status,hired_at,updated_at,id). Prefix - for desc",
    "SortApplicationsParam": "Multi-field sort (applicant_name,status,created_at,updated_at,id). Prefix - for desc",
    "SortModulesParam": "Multi-field sort (category,sort_order,name). Prefix - for desc",
    "SortUprankRequestsParam": "Multi-field sort (created_at,status,id). Prefix - for desc",
    "SortSanctionsParam": "Multi-field sort (created_at,status,id). Prefix - for desc",
    "SortRolesParam": "Multi-field sort (name,id). Prefix - for desc",
    "SortPermissionsParam": "Multi-field sort (code,service). Prefix - for desc",
}

__all__ = [
    "ENTITIES",
    "READ_PERMISSIONS",
    "ACTION_REGISTRY",
    "OPERATIONS",
    "SORT_PARAM_MAP",
    "SORT_DETAILS",
]
