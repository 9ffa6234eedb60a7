"""Bound deletion of one remote counterpart."""
from __future__ import annotations
import logging
from typing import Callable, Optional

from ..core.keycloak.exceptions import NotFoundError


class Terminator:
    """Delete the remote entity named by ``realm``/``key``; an already missing entity is success.

    Usage:
        term = Terminator("demo", "alice", adapter.users.delete_realm_user, kind="user")
        term.delete()
    """

    def __init__(
        self,
        realm: str,
        key: str,
        delete_fn: Callable[[str, str], None],
        *,
        kind: str = "entity",
        logger: Optional[logging.Logger] = None,
    ):
        self.realm = realm
        self.key = key
        self.kind = kind
        self._delete_fn = delete_fn
        self.log = logger or logging.getLogger(__name__)

    def delete(self) -> None:
        """Run the deletion.

        Raises:
            KeycloakError: Any failure other than the entity being absent
        """
        self.log.info("Start deleting %s %r from realm %r", self.kind, self.key, self.realm)
        try:
            self._delete_fn(self.realm, self.key)
        except NotFoundError:
            self.log.info("%s %r already absent from realm %r", self.kind.capitalize(), self.key, self.realm)
            return
        self.log.info("Done deleting %s %r", self.kind, self.key)


class RealmTerminator(Terminator):
    """Realms are their own scope, so the key is the realm name."""

    def __init__(self, realm: str, delete_fn: Callable[[str], None], *, logger: Optional[logging.Logger] = None):
        super().__init__(realm, realm, lambda realm_name, _key: delete_fn(realm_name), kind="realm", logger=logger)
