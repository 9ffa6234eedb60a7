"""Keycloak realm role management operations."""
from __future__ import annotations
import logging
from typing import List, Optional

from .client import KeycloakClient
from .dto import RoleSpec
from .exceptions import RemoteNotFoundError, RoleNotFoundError


class RoleService:
    """Service for managing Keycloak realm roles."""

    def __init__(self, client: KeycloakClient, logger: Optional[logging.Logger] = None):
        """Initialize role service.

        Args:
            client: Authenticated Keycloak client
            logger: Logger to report progress on
        """
        self.client = client
        self.log = logger or logging.getLogger(__name__)

    def realm_role_exists(self, realm: str, role_name: str) -> bool:
        return self.client.exists(f"/admin/realms/{realm}/roles/{role_name}", operation=f"check realm role {role_name}")

    def get_realm_role(self, realm: str, role_name: str) -> dict:
        """Resolve a realm role by name.

        Raises:
            RoleNotFoundError: If the role does not exist
        """
        try:
            body = self.client.get_json(
                f"/admin/realms/{realm}/roles/{role_name}", operation=f"get realm role {role_name}"
            )
        except RemoteNotFoundError as exc:
            raise RoleNotFoundError(f"role '{role_name}' not found in realm '{realm}'") from exc
        return body

    def resolve_roles(self, realm: str, role_names: List[str]) -> List[dict]:
        """Resolve every name before anything is attached; the first miss raises."""
        return [self.get_realm_role(realm, name) for name in role_names]

    def create_realm_role(self, realm: str, role: RoleSpec) -> None:
        """Create a realm role and attach its composites.

        Every composite member is resolved after the role is created and before
        the attachment call; an unresolvable member aborts without attaching any.

        Raises:
            RoleNotFoundError: If a composite member does not exist
        """
        self.client.post(
            f"/admin/realms/{realm}/roles",
            json={
                "name": role.name,
                "description": role.description,
                "attributes": role.attributes,
                "composite": role.composite,
            },
            operation=f"create realm role {role.name}",
        )
        self.log.info("Realm role %r created in realm %r", role.name, realm)

        if role.composite and role.composites:
            members = self.resolve_roles(realm, role.composites)
            self._add_composites(realm, role.name, members)

    def sync_realm_role(self, realm: str, role: RoleSpec) -> None:
        """Create the role or bring description, attributes and composites in line."""
        if not self.realm_role_exists(realm, role.name):
            self.create_realm_role(realm, role)
            return

        current = self.get_realm_role(realm, role.name)
        if (
            (current.get("description") or "") != role.description
            or (current.get("attributes") or {}) != role.attributes
            or bool(current.get("composite")) != role.composite
        ):
            current.update({"description": role.description, "attributes": role.attributes, "composite": role.composite})
            self.client.put(
                f"/admin/realms/{realm}/roles/{role.name}", json=current, operation=f"update realm role {role.name}"
            )
            self.log.info("Realm role %r updated in realm %r", role.name, realm)

        if not role.composite:
            return

        body = self.client.get_json(
            f"/admin/realms/{realm}/roles/{role.name}/composites",
            operation=f"get composites of realm role {role.name}",
        )
        attached = {r.get("name"): r for r in body or [] if not r.get("clientRole")}
        missing = [name for name in role.composites if name not in attached]
        extra = [r for name, r in attached.items() if name not in role.composites]

        if missing:
            self._add_composites(realm, role.name, self.resolve_roles(realm, missing))
        if extra:
            self.client.delete(
                f"/admin/realms/{realm}/roles/{role.name}/composites",
                json=extra,
                operation=f"remove composites of realm role {role.name}",
            )

    def delete_realm_role(self, realm: str, role_name: str) -> None:
        """Delete a realm role.

        Raises:
            RoleNotFoundError: If the role is already gone
        """
        try:
            self.client.delete(f"/admin/realms/{realm}/roles/{role_name}", operation=f"delete realm role {role_name}")
        except RemoteNotFoundError as exc:
            raise RoleNotFoundError(f"role '{role_name}' not found in realm '{realm}'") from exc
        self.log.info("Realm role %r deleted from realm %r", role_name, realm)

    def _add_composites(self, realm: str, role_name: str, members: List[dict]) -> None:
        self.client.post(
            f"/admin/realms/{realm}/roles/{role_name}/composites",
            json=members,
            operation=f"add composites to realm role {role_name}",
            expected=(204,),
        )
        self.log.info("Composites %s attached to %r", sorted(m.get("name") for m in members), role_name)
