"""
auth/permissions.py -- Role rights and permission implication tables.

Both tables are module-level read-only mappings built once at import. Nothing
mutates them afterwards, so concurrent request threads read them without
locking.

ROLE_RIGHTS lists what each role is granted directly. PERMISSION_MAP lists
what a permission implies: holding manage_users is the same as holding every
other *_users permission. expand_permissions() follows PERMISSION_MAP to a
fixed point, so a chain like a -> b -> c grants c even though the current
table is only one level deep.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from auth.models import Permission, Role

ROLE_RIGHTS: MappingProxyType[str, frozenset[str]] = MappingProxyType(
    {
        Role.ADMIN: frozenset({Permission.MANAGE_USERS}),
        Role.MODERATOR: frozenset({Permission.READ_USERS, Permission.UPDATE_USERS}),
        Role.EDITOR: frozenset(),
        Role.USER: frozenset(),
    }
)

PERMISSION_MAP: MappingProxyType[str, frozenset[str]] = MappingProxyType(
    {
        Permission.MANAGE_USERS: frozenset(
            {
                Permission.READ_USERS,
                Permission.CREATE_USERS,
                Permission.UPDATE_USERS,
                Permission.DELETE_USERS,
            }
        ),
    }
)


def expand_permissions(granted: Iterable[str]) -> frozenset[str]:
    """Return granted plus everything it implies, transitively."""
    expanded = set(granted)
    pending = list(expanded)
    while pending:
        for implied in PERMISSION_MAP.get(pending.pop(), ()):
            if implied not in expanded:
                expanded.add(implied)
                pending.append(implied)
    return frozenset(expanded)


def role_permissions(role: str) -> frozenset[str]:
    """Expanded permission set for a role. Unknown roles get nothing."""
    return expand_permissions(ROLE_RIGHTS.get(role, ()))


def has_permissions(role: str, required: Iterable[str]) -> bool:
    granted = role_permissions(role)
    return all(perm in granted for perm in required)
