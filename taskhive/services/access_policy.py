"""Access policy: who may do what to which collection.

Every route asks :func:`evaluate` before touching storage. The answer is one
of three shapes:

* ``deny``: reject the request outright.
* ``allow-all``: no restriction on rows.
* ``allow-filtered``: allowed, but only for rows matching a single
  equality :class:`Filter` (``tenant_id == X`` or ``id == Y``).

Field-level rules live here too, so routes never compare role strings
themselves. Nothing in this module performs I/O.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sqlalchemy.sql.elements import ColumnElement

from taskhive.models.user import UserRole

logger = logging.getLogger(__name__)


class Collection(StrEnum):
    USERS = "users"
    TODOS = "todos"
    CATEGORIES = "categories"
    TENANTS = "tenants"
    SETTINGS = "settings"


class Operation(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Effect(StrEnum):
    DENY = "deny"
    ALLOW_ALL = "allow-all"
    ALLOW_FILTERED = "allow-filtered"


# Fields a non-admin may never write, per collection.
PROTECTED_FIELDS: dict[Collection, frozenset[str]] = {
    Collection.USERS: frozenset({"roles", "tenant_id", "is_active"}),
}


def resolve_ref(value: Any) -> uuid.UUID | None:
    """Normalise a relationship reference to a bare id.

    Accepts ``None``, a UUID, a UUID string, a mapping with an ``id`` key,
    or any object with an ``id`` attribute.
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str):
        return uuid.UUID(value)
    if isinstance(value, Mapping):
        return resolve_ref(value.get("id"))
    if hasattr(value, "id"):
        return resolve_ref(value.id)
    raise TypeError(f"Cannot resolve a reference from {type(value).__name__}")


@dataclass(frozen=True)
class Caller:
    """The authenticated identity a decision is made for."""

    id: uuid.UUID
    roles: frozenset[str] = frozenset({UserRole.USER.value})
    tenant_id: uuid.UUID | None = None

    @classmethod
    def from_user(cls, user: Any, tenant_active: bool = True) -> Caller:
        """A deactivated workspace counts as no workspace at all."""
        return cls(
            id=resolve_ref(user.id),
            roles=frozenset(user.roles or ()),
            tenant_id=resolve_ref(user.tenant_id) if tenant_active else None,
        )

    @property
    def is_admin(self) -> bool:
        return UserRole.ADMIN.value in self.roles


@dataclass(frozen=True)
class Filter:
    """A single ``field == value`` row restriction."""

    field: str
    value: Any
    op: str = "equals"

    def to_clause(self, model: type) -> ColumnElement[bool]:
        """Render as a SQLAlchemy WHERE clause against ``model``."""
        return getattr(model, self.field) == self.value

    def matches(self, record: Any) -> bool:
        return getattr(record, self.field, None) == self.value

    def as_dict(self) -> dict[str, Any]:
        return {"field": self.field, "op": self.op, "value": str(self.value)}


@dataclass(frozen=True)
class Decision:
    effect: Effect
    filter: Filter | None = None

    @property
    def allowed(self) -> bool:
        return self.effect is not Effect.DENY

    def permits(self, record: Any) -> bool:
        """True if ``record`` is visible under this decision."""
        if self.effect is Effect.DENY:
            return False
        if self.filter is None:
            return True
        return self.filter.matches(record)


DENY = Decision(Effect.DENY)
ALLOW_ALL = Decision(Effect.ALLOW_ALL)


def allow_filtered(field_name: str, value: Any) -> Decision:
    return Decision(Effect.ALLOW_FILTERED, Filter(field_name, value))


def evaluate(
    caller: Caller | None,
    collection: Collection | str,
    operation: Operation | str,
) -> Decision:
    """Decide whether ``caller`` may run ``operation`` on ``collection``.

    Rules are checked in order and the first match wins.
    """
    collection = Collection(collection)
    operation = Operation(operation)

    if caller is None:
        if collection is Collection.USERS and operation is Operation.CREATE:
            return ALLOW_ALL
        return DENY

    if caller.is_admin:
        return ALLOW_ALL

    if collection is Collection.USERS:
        if operation in (Operation.READ, Operation.UPDATE):
            return allow_filtered("id", caller.id)
        if operation is Operation.DELETE:
            return DENY
        return ALLOW_ALL

    if collection in (Collection.TODOS, Collection.CATEGORIES):
        if operation is Operation.CREATE:
            # The repository rejects creation when the caller has no tenant.
            return ALLOW_ALL
        if caller.tenant_id is None:
            return DENY
        return allow_filtered("tenant_id", caller.tenant_id)

    if collection is Collection.TENANTS:
        if operation is Operation.READ and caller.tenant_id is not None:
            return allow_filtered("id", caller.tenant_id)
        return DENY

    if collection is Collection.SETTINGS:
        return ALLOW_ALL if operation is Operation.READ else DENY

    return DENY


def can_write_field(caller: Caller | None, collection: Collection | str, field_name: str) -> bool:
    if caller is not None and caller.is_admin:
        return True
    return field_name not in PROTECTED_FIELDS.get(Collection(collection), frozenset())


def strip_protected_fields(
    caller: Caller | None,
    collection: Collection | str,
    data: dict[str, Any],
) -> dict[str, Any]:
    """Drop fields ``caller`` may not write. Dropped fields are ignored, not rejected."""
    kept: dict[str, Any] = {}
    dropped: list[str] = []
    for name, value in data.items():
        if can_write_field(caller, collection, name):
            kept[name] = value
        else:
            dropped.append(name)
    if dropped:
        logger.debug(
            "Ignoring protected fields %s on %s for caller %s",
            dropped, collection, caller.id if caller else None,
        )
    return kept
