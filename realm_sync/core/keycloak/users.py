"""Keycloak user management operations."""
from __future__ import annotations
import logging
from typing import List, Optional

from .client import KeycloakClient
from .clients import ClientService
from .dto import UserSpec
from .exceptions import GroupNotFoundError, RemoteNotFoundError, RoleNotFoundError, UserNotFoundError
from .roles import RoleService
from .sync import same_subset

BUILTIN_REALM_ROLES = frozenset({"offline_access", "uma_authorization"})


def _is_builtin_role(name: str) -> bool:
    return name in BUILTIN_REALM_ROLES or name.startswith("default-roles-")


class UserService:
    """Service for managing Keycloak users."""

    def __init__(self, client: KeycloakClient, logger: Optional[logging.Logger] = None):
        """Initialize user service.

        Args:
            client: Authenticated Keycloak client
            logger: Logger to report progress on
        """
        self.client = client
        self.log = logger or logging.getLogger(__name__)

    def get_user_by_username(self, realm: str, username: str) -> Optional[dict]:
        """Return the user representation that exactly matches the username.

        Args:
            realm: Realm name
            username: Username to search for

        Returns:
            User representation or None if not found
        """
        body = self.client.get_json(
            f"/admin/realms/{realm}/users",
            params={"username": username, "exact": "true"},
            operation=f"find user {username}",
        )
        return next((u for u in body or [] if u.get("username") == username), None)

    def user_exists(self, realm: str, username: str) -> bool:
        return self.get_user_by_username(realm, username) is not None

    def get_user_id(self, realm: str, username: str) -> str:
        """Resolve the remote id of ``username``.

        Raises:
            UserNotFoundError: If no user matches
        """
        user = self.get_user_by_username(realm, username)
        if user is None:
            raise UserNotFoundError(f"user '{username}' not found in realm '{realm}'")
        return user["id"]

    def create_realm_user(self, realm: str, username: str) -> None:
        """Create an enabled user whose email is its username."""
        self.client.post(
            f"/admin/realms/{realm}/users",
            json={"username": username, "email": username, "enabled": True},
            operation=f"create user {username}",
        )
        self.log.info("User %r created in realm %r", username, realm)

    def sync_realm_user(self, realm: str, user: UserSpec, password: Optional[str] = None, add_only: bool = False) -> None:
        """Create or update ``user`` and bring its password, roles and groups in line.

        Args:
            realm: Realm name
            user: Desired user
            password: Resolved credential, left untouched when None
            add_only: Only add roles and groups, never remove undeclared ones
        """
        rep = {
            "username": user.username,
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "enabled": user.enabled,
            "emailVerified": user.email_verified,
            "requiredActions": sorted(user.required_actions),
        }
        existing = self.get_user_by_username(realm, user.username)
        if existing is None:
            self.client.post(f"/admin/realms/{realm}/users", json=rep, operation=f"create user {user.username}")
            user_id = self.get_user_id(realm, user.username)
            self.log.info("User %r created in realm %r (id=%s)", user.username, realm, user_id)
        else:
            user_id = existing["id"]
            # Unset profile fields are omitted remotely and actions come back in server order.
            current = {**existing, "requiredActions": sorted(existing.get("requiredActions") or [])}
            if not same_subset(rep, current, rep):
                merged = {**existing, **rep}
                self.client.put(f"/admin/realms/{realm}/users/{user_id}", json=merged, operation=f"update user {user.username}")
                self.log.info("User %r updated in realm %r", user.username, realm)

        if password is not None:
            self.set_password(realm, user_id, password)

        self._sync_realm_roles(realm, user_id, user.roles, add_only)
        self._sync_groups(realm, user_id, user.groups, add_only)

    def set_password(self, realm: str, user_id: str, password: str, temporary: bool = False) -> None:
        self.client.put(
            f"/admin/realms/{realm}/users/{user_id}/reset-password",
            json={"type": "password", "temporary": temporary, "value": password},
            operation="reset user password",
            expected=(204,),
        )

    def delete_realm_user(self, realm: str, username: str) -> None:
        """Delete a user by username.

        Raises:
            UserNotFoundError: If the user is already gone
        """
        user_id = self.get_user_id(realm, username)
        try:
            self.client.delete(f"/admin/realms/{realm}/users/{user_id}", operation=f"delete user {username}")
        except RemoteNotFoundError as exc:
            raise UserNotFoundError(f"user '{username}' not found in realm '{realm}'") from exc
        self.log.info("User %r deleted from realm %r", username, realm)

    def get_user_realm_role_names(self, realm: str, user_id: str) -> List[str]:
        body = self.client.get_json(
            f"/admin/realms/{realm}/users/{user_id}/role-mappings/realm",
            operation="get user realm role mappings",
        )
        return [r.get("name") for r in body or []]

    def has_user_realm_role(self, realm: str, username: str, role: str) -> bool:
        user_id = self.get_user_id(realm, username)
        return role in self.get_user_realm_role_names(realm, user_id)

    def add_realm_role_to_user(self, realm: str, username: str, role: str) -> None:
        user_id = self.get_user_id(realm, username)
        role_rep = RoleService(self.client, self.log).get_realm_role(realm, role)
        self._post_realm_roles(realm, user_id, [role_rep])
        self.log.info("Realm role %r granted to %r", role, username)

    def has_user_client_role(self, realm: str, username: str, client_id: str, role: str) -> bool:
        user_id = self.get_user_id(realm, username)
        client_uuid = ClientService(self.client, self.log).get_client_id(realm, client_id)
        body = self.client.get_json(
            f"/admin/realms/{realm}/users/{user_id}/role-mappings/clients/{client_uuid}",
            operation=f"get user role mappings of client {client_id}",
        )
        return any(r.get("name") == role for r in body or [])

    def add_client_role_to_user(self, realm: str, username: str, client_id: str, role: str) -> None:
        """Grant ``role`` of ``client_id`` to the user.

        Raises:
            UserNotFoundError: If the user does not exist
            ClientNotFoundError: If the client does not exist
            RoleNotFoundError: If the client has no such role
        """
        user_id = self.get_user_id(realm, username)
        client_uuid = ClientService(self.client, self.log).get_client_id(realm, client_id)
        try:
            role_rep = self.client.get_json(
                f"/admin/realms/{realm}/clients/{client_uuid}/roles/{role}",
                operation=f"get role {role} of client {client_id}",
            )
        except RemoteNotFoundError as exc:
            raise RoleNotFoundError(f"role '{role}' not found on client '{client_id}'") from exc
        self.client.post(
            f"/admin/realms/{realm}/users/{user_id}/role-mappings/clients/{client_uuid}",
            json=[role_rep],
            operation=f"add client role {role} to user {username}",
            expected=(204,),
        )
        self.log.info("Client role %s.%s granted to %r", client_id, role, username)

    def _post_realm_roles(self, realm: str, user_id: str, roles: List[dict]) -> None:
        self.client.post(
            f"/admin/realms/{realm}/users/{user_id}/role-mappings/realm",
            json=roles,
            operation="add user realm role mappings",
            expected=(204,),
        )

    def _sync_realm_roles(self, realm: str, user_id: str, desired: List[str], add_only: bool) -> None:
        current = set(self.get_user_realm_role_names(realm, user_id))
        missing = [name for name in desired if name not in current]
        if missing:
            # Resolve all first so a bad name grants nothing.
            self._post_realm_roles(realm, user_id, RoleService(self.client, self.log).resolve_roles(realm, missing))

        if add_only:
            return
        extra = [name for name in current if name not in desired and not _is_builtin_role(name)]
        if extra:
            body = self.client.get_json(
                f"/admin/realms/{realm}/users/{user_id}/role-mappings/realm",
                operation="get user realm role mappings",
            )
            self.client.delete(
                f"/admin/realms/{realm}/users/{user_id}/role-mappings/realm",
                json=[r for r in body or [] if r.get("name") in extra],
                operation="remove user realm role mappings",
            )

    def get_group_id(self, realm: str, group_name: str) -> str:
        """Resolve a top-level group by name.

        Raises:
            GroupNotFoundError: If no group matches
        """
        body = self.client.get_json(
            f"/admin/realms/{realm}/groups", params={"search": group_name}, operation=f"find group {group_name}"
        )
        group = next((g for g in body or [] if g.get("name") == group_name), None)
        if group is None:
            raise GroupNotFoundError(f"group '{group_name}' not found in realm '{realm}'")
        return group["id"]

    def _sync_groups(self, realm: str, user_id: str, desired: List[str], add_only: bool) -> None:
        body = self.client.get_json(f"/admin/realms/{realm}/users/{user_id}/groups", operation="get user groups")
        current = {g.get("name"): g.get("id") for g in body or []}

        to_join = [self.get_group_id(realm, name) for name in desired if name not in current]
        for group_id in to_join:
            self.client.put(
                f"/admin/realms/{realm}/users/{user_id}/groups/{group_id}",
                operation="add user to group",
                expected=(204,),
            )

        if add_only:
            return
        for name, group_id in current.items():
            if name not in desired:
                self.client.delete(
                    f"/admin/realms/{realm}/users/{user_id}/groups/{group_id}",
                    operation=f"remove user from group {name}",
                )
