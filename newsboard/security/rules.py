"""
Access rules for the document store.

Reads of the display collections are public so screens can run without
signing in; every write needs an admin identity. Unknown collections are
closed to everybody except admins.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from newsboard.domain import Identity
from newsboard.exceptions import PermissionDeniedError

READ_OPERATIONS = frozenset({"get", "list"})
WRITE_OPERATIONS = frozenset({"create", "update", "delete"})


@dataclass
class AccessRules:
    """Per-collection read/write policy."""

    public_read_collections: set[str] = field(default_factory=set)

    def allows(self, operation: str, collection: str, identity: Identity | None) -> bool:
        if identity is not None and identity.is_admin:
            return True
        if operation in READ_OPERATIONS:
            return collection in self.public_read_collections
        return False

    def check(self, operation: str, path: str, identity: Identity | None) -> None:
        """Raise PermissionDeniedError unless `operation` on `path` is allowed."""
        collection = path.split("/", 1)[0]
        if not self.allows(operation, collection, identity):
            raise PermissionDeniedError(
                path=path,
                operation=operation,
                uid=identity.uid if identity else None,
            )


def default_rules(*public_collections: str) -> AccessRules:
    return AccessRules(public_read_collections=set(public_collections))
