"""Static role -> resource -> actions permission matrix.

Lookups are total: an unknown role, an unknown resource or an action that is
not listed all come back as "denied".
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

CREATE = "create"
READ = "read"
UPDATE = "update"
DELETE = "delete"

ACTIONS = (CREATE, READ, UPDATE, DELETE)
ROLES = ("admin", "head_teacher", "teacher", "accountant")
RESOURCES = ("students", "fees", "staff", "payroll", "procurement", "inventory", "reports", "settings")

CRUD = frozenset(ACTIONS)
NONE: frozenset[str] = frozenset()


def _actions(*actions: str) -> frozenset[str]:
    return frozenset(actions)


def _freeze(table: Mapping[str, Mapping[str, Iterable[str]]]) -> Mapping[str, Mapping[str, frozenset[str]]]:
    frozen = {}
    for role in ROLES:
        entry = table.get(role, {})
        frozen[role] = MappingProxyType({resource: frozenset(entry.get(resource, ())) for resource in RESOURCES})
    return MappingProxyType(frozen)


PERMISSION_MATRIX = _freeze({
    "admin": {resource: CRUD for resource in RESOURCES},
    "head_teacher": {
        "students": CRUD,
        "fees": _actions(READ, UPDATE),
        "staff": _actions(CREATE, READ, UPDATE),
        "payroll": _actions(READ, UPDATE),
        "procurement": _actions(READ, UPDATE),
        "inventory": _actions(READ),
        "reports": _actions(READ),
        "settings": _actions(READ, UPDATE),
    },
    "teacher": {
        "students": _actions(READ, UPDATE),
        "fees": _actions(READ),
        "staff": _actions(READ),
        "payroll": NONE,
        "procurement": NONE,
        "inventory": NONE,
        "reports": _actions(READ),
        "settings": _actions(READ),
    },
    "accountant": {
        "students": _actions(READ),
        "fees": CRUD,
        "staff": _actions(READ),
        "payroll": CRUD,
        "procurement": CRUD,
        "inventory": _actions(READ, UPDATE),
        "reports": _actions(READ),
        "settings": _actions(READ),
    },
})


def allowed_actions(role: str | None, resource: str | None) -> frozenset[str]:
    role_entry = PERMISSION_MATRIX.get(role) if role is not None else None
    if role_entry is None:
        return NONE
    return role_entry.get(resource, NONE) if resource is not None else NONE


def can(role: str | None, resource: str | None, action: str | None) -> bool:
    return action in allowed_actions(role, resource)
