# app/core/policy.py
"""
Page visibility policy.

Maps each page (by policy name) to the roles allowed to open it.
Super admins see everything.
"""
from __future__ import annotations
from typing import Dict, List, Set

from core.constants import Role

PAGE_POLICY: Dict[str, Set[str]] = {
    "Course Configuration": {Role.FACULTY},
    "Marks Entry": {Role.FACULTY},
    "Student Reports": {Role.FACULTY, Role.ADMIN},
    "Assign Courses": {Role.ADMIN},
}


def can_view_page(policy_name: str, roles: Set[str]) -> bool:
    if Role.SUPERADMIN in roles:
        return policy_name in PAGE_POLICY
    allowed = PAGE_POLICY.get(policy_name)
    if not allowed:
        return False
    return bool(allowed & set(roles))


def visible_pages_for(roles: Set[str]) -> List[str]:
    return [name for name in PAGE_POLICY if can_view_page(name, roles)]
