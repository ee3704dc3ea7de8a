"""Identity store: the ``users`` table plus credential handling.

Rows leaving this module never carry ``password_hash``; the one exception is
``_find_with_hash``, which stays private to the credential checks.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any

from sqlalchemy.engine import Connection

from school_admin.auth import passwords
from school_admin.core import config
from school_admin.core.exceptions import InvalidPasswordError, NotFoundError, ValidationError
from school_admin.database import ConnectionManager
from school_admin.store import query_builder as qb
from school_admin.store.query_builder import Predicate, utcnow
from school_admin.store.record_store import Record, RecordStore

logger = logging.getLogger(__name__)

USERS_TABLE = "users"

PUBLIC_COLUMNS = (
    "id",
    "username",
    "email",
    "full_name",
    "role",
    "phone",
    "is_active",
    "last_login",
    "created_at",
    "updated_at",
)
SEARCH_COLUMNS = ("full_name", "username", "email")

# Never changed through a profile update
PROTECTED_PROFILE_FIELDS = frozenset({"id", "password", "password_hash", "role", "is_active"})


def public_identity(row: Mapping[str, Any] | None) -> Record | None:
    if row is None:
        return None
    return {column: value for column, value in row.items() if column not in ("password", "password_hash")}


class UserStore:
    """Specialization of the record store for ``users``."""

    def __init__(self, db: ConnectionManager, rounds: int | None = None):
        self.db = db
        self.records = RecordStore(db)
        self.rounds = rounds or config.BCRYPT_ROUNDS

    def create(self, user_data: Mapping[str, Any], connection: Connection | None = None) -> Record:
        fields = dict(user_data)
        password = fields.pop("password", None)
        if password:
            fields["password_hash"] = passwords.hash_password(password, rounds=self.rounds)
        if not fields.get("password_hash"):
            raise ValidationError("A password is required to create a user")

        user = self.records.create(USERS_TABLE, fields, connection)
        logger.info("Created user %s with role %s", user["username"], user["role"])
        return public_identity(user)

    def _find_with_hash(self, conditions: Mapping[str, Any]) -> Record | None:
        return self.records.find_one(USERS_TABLE, conditions, order_by=None)

    def find_by_id(self, user_id: str) -> Record | None:
        return public_identity(self.records.find_by_id(USERS_TABLE, user_id))

    def find_by_username(self, username: str) -> Record | None:
        return public_identity(self._find_with_hash({"username": username}))

    def find_by_email(self, email: str) -> Record | None:
        return public_identity(self._find_with_hash({"email": email}))

    def get_profile(self, user_id: str) -> Record | None:
        statement = qb.build_select(USERS_TABLE, {"id": user_id}, order_by=None, columns=PUBLIC_COLUMNS)
        return self.db.execute(statement.sql, statement.params).first()

    def authenticate(self, username: str, password: str) -> Record | None:
        """Return the identity for a correct username/password pair, else ``None``.

        A missing user still costs one bcrypt check so the two failure cases
        take about the same time. A disabled account is returned unchanged,
        without a ``last_login`` stamp, so the caller can reject it.
        """
        user = self._find_with_hash({"username": username})
        stored_hash = user["password_hash"] if user else passwords.dummy_hash(self.rounds)
        password_ok = passwords.verify_password(password, stored_hash)
        if user is None or not password_ok:
            logger.info("Failed login attempt")
            return None
        if not user["is_active"]:
            logger.info("Login attempt for disabled user %s", user["id"])
            return public_identity(user)

        updated = self.records.update_by_id(USERS_TABLE, user["id"], {"last_login": utcnow()})
        return public_identity(updated or user)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> bool:
        user = self.records.find_by_id(USERS_TABLE, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not passwords.verify_password(current_password, user["password_hash"]):
            logger.info("Rejected password change for user %s", user_id)
            raise InvalidPasswordError("Current password is incorrect")

        new_hash = passwords.hash_password(new_password, rounds=self.rounds)
        self.records.update_by_id(USERS_TABLE, user_id, {"password_hash": new_hash})
        logger.info("Password changed for user %s", user_id)
        return True

    def update_profile(self, user_id: str, profile_data: Mapping[str, Any]) -> Record | None:
        allowed = {key: value for key, value in profile_data.items() if key not in PROTECTED_PROFILE_FIELDS}
        return public_identity(self.records.update_by_id(USERS_TABLE, user_id, allowed))

    def set_active_status(self, user_id: str, is_active: bool) -> Record | None:
        return public_identity(self.records.update_by_id(USERS_TABLE, user_id, {"is_active": is_active}))

    def touch_last_login(self, user_id: str) -> None:
        statement = qb.build_update(USERS_TABLE, user_id, {"last_login": utcnow()}, stamp_updated_at=False)
        self.db.execute(statement.sql, statement.params)

    def find_by_role(self, role: str) -> list[Record]:
        rows = self.records.find_all(USERS_TABLE, {"role": role, "is_active": True}, order_by="full_name")
        return [public_identity(row) for row in rows]

    def _exists_excluding(self, column: str, value: Any, exclude_id: str | None) -> bool:
        predicate = Predicate(conditions={column: value}, exclude={"id": exclude_id} if exclude_id else {})
        return self.records.exists(USERS_TABLE, predicate)

    def username_exists(self, username: str, exclude_id: str | None = None) -> bool:
        return self._exists_excluding("username", username, exclude_id)

    def email_exists(self, email: str, exclude_id: str | None = None) -> bool:
        return self._exists_excluding("email", email, exclude_id)

    def get_all_users(self, page: int = 1, limit: int = 20, filters: Mapping[str, Any] | None = None) -> dict:
        filters = filters or {}
        page = max(int(page), 1)
        limit = max(int(limit), 1)

        conditions = {}
        if filters.get("role"):
            conditions["role"] = filters["role"]
        if filters.get("is_active") is not None:
            conditions["is_active"] = filters["is_active"]
        predicate = Predicate(
            conditions=conditions,
            search_fields=SEARCH_COLUMNS,
            term=filters.get("search") or None,
        )

        rows = self.records.find_all(
            USERS_TABLE,
            predicate,
            order_by="created_at DESC",
            limit=limit,
            offset=(page - 1) * limit,
        )
        total = self.records.count(USERS_TABLE, predicate)
        return {
            "users": [public_identity(row) for row in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }
