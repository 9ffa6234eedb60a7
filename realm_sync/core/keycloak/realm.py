"""Keycloak realm management operations."""
from __future__ import annotations
import copy
import logging
from typing import Dict, List, Optional

from .client import KeycloakClient
from .dto import (
    IdentityProviderMapper,
    RealmSettings,
    RealmSpec,
    decode_identity_provider_mapper,
)
from .exceptions import RealmNotFoundError, RemoteNotFoundError
from .sync import diff_by_name, same_subset

IDP_MAPPER_COMPARE_KEYS = ("identityProviderAlias", "identityProviderMapper", "config")


class RealmService:
    """Service for managing Keycloak realms."""

    def __init__(self, client: KeycloakClient, logger: Optional[logging.Logger] = None):
        """Initialize realm service.

        Args:
            client: Authenticated Keycloak client
            logger: Logger to report progress on
        """
        self.client = client
        self.log = logger or logging.getLogger(__name__)

    def realm_exists(self, realm: str) -> bool:
        """Check whether the given realm already exists.

        Args:
            realm: Realm name

        Returns:
            True if realm exists, False otherwise
        """
        exists = self.client.exists(f"/admin/realms/{realm}", operation=f"check realm {realm}")
        self.log.debug("Realm %r exists: %s", realm, exists)
        return exists

    def get_realm(self, realm: str) -> dict:
        """Return the realm representation.

        Raises:
            RealmNotFoundError: If the realm does not exist
        """
        try:
            return self.client.get_json(f"/admin/realms/{realm}", operation=f"get realm {realm}")
        except RemoteNotFoundError as exc:
            raise RealmNotFoundError(f"realm '{realm}' not found") from exc

    def create_realm_with_default_config(self, spec: RealmSpec) -> None:
        """Create the realm enabled and otherwise untouched."""
        payload = {"realm": spec.name, "enabled": True}
        if spec.id:
            payload["id"] = spec.id
        self.client.post("/admin/realms", json=payload, operation=f"create realm {spec.name}")
        self.log.info("Realm %r created with default config", spec.name)

    def update_realm(self, realm: str, representation: dict) -> None:
        self.client.put(f"/admin/realms/{realm}", json=representation, operation=f"update realm {realm}")

    def delete_realm(self, realm: str) -> None:
        """Delete a realm.

        Raises:
            RealmNotFoundError: If the realm is already gone
        """
        try:
            self.client.delete(f"/admin/realms/{realm}", operation=f"delete realm {realm}")
        except RemoteNotFoundError as exc:
            raise RealmNotFoundError(f"realm '{realm}' not found") from exc
        self.log.info("Realm %r deleted", realm)

    def get_openid_config(self, realm: str) -> str:
        """Return the raw OpenID discovery document of the realm."""
        resp = self.client.get(
            f"/realms/{realm}/.well-known/openid-configuration",
            operation=f"get openid configuration of realm {realm}",
            auth=False,
        )
        return resp.text

    def update_realm_settings(self, realm: str, settings: RealmSettings) -> bool:
        """Merge theme, security header, password policy and frontend URL settings.

        Security headers are merged into the current map; password policies are
        rendered as ``type(value) and type(value)``. The realm is only written
        when the merge changed something. Returns True when it was written.
        """
        current = self.get_realm(realm)
        representation = copy.deepcopy(current)

        if settings.themes is not None:
            themes = settings.themes
            for key, value in (
                ("loginTheme", themes.login_theme),
                ("accountTheme", themes.account_theme),
                ("adminTheme", themes.admin_console_theme),
                ("emailTheme", themes.email_theme),
                ("internationalizationEnabled", themes.internationalization_enabled),
            ):
                if value is not None:
                    representation[key] = value

        if settings.browser_security_headers:
            headers: Dict[str, str] = dict(representation.get("browserSecurityHeaders") or {})
            headers.update(settings.browser_security_headers)
            representation["browserSecurityHeaders"] = headers

        if settings.password_policies:
            representation["passwordPolicy"] = " and ".join(
                f"{policy.type}({policy.value})" for policy in settings.password_policies
            )

        if settings.frontend_url:
            attributes = dict(representation.get("attributes") or {})
            attributes["frontendUrl"] = settings.frontend_url
            representation["attributes"] = attributes

        if representation == current:
            return False
        self.update_realm(realm, representation)
        self.log.info("Realm %r settings updated", realm)
        return True

    def set_browser_flow(self, realm: str, flow_alias: str) -> bool:
        """Bind ``flow_alias`` as the realm browser flow. Returns True when changed."""
        representation = self.get_realm(realm)
        if representation.get("browserFlow") == flow_alias:
            return False
        representation["browserFlow"] = flow_alias
        self.update_realm(realm, representation)
        self.log.info("Realm %r browser flow set to %r", realm, flow_alias)
        return True

    def get_realm_identity_provider_mappers(self, realm: str) -> Dict[str, IdentityProviderMapper]:
        """Decode the realm's embedded IdP mappers, keyed by name.

        Entries that cannot be decoded into a named mapper are skipped with a warning.
        """
        raw_mappers = self.get_realm(realm).get("identityProviderMappers") or []
        current: Dict[str, IdentityProviderMapper] = {}
        for raw in raw_mappers:
            mapper, ok = decode_identity_provider_mapper(raw)
            if not ok:
                self.log.warning("Skipping unusable identity provider mapper in realm %r: %r", realm, raw)
                continue
            current[mapper.name] = mapper
        return current

    def sync_realm_identity_provider_mappers(
        self,
        realm: str,
        mappers: List[IdentityProviderMapper],
        add_only: bool = True,
    ) -> None:
        """Make the realm's IdP mappers match ``mappers`` by name.

        With ``add_only`` False, mappers of the same identity providers that are
        not declared are deleted as well. A mapper whose provider alias changed
        is deleted under the old alias and created under the new one.
        """
        current = self.get_realm_identity_provider_mappers(realm)
        if not add_only:
            aliases = {m.identity_provider_alias for m in mappers}
            names = {m.name for m in mappers}
            current = {
                name: m for name, m in current.items() if m.identity_provider_alias in aliases or name in names
            }

        def differs(claimed: IdentityProviderMapper, existing: IdentityProviderMapper) -> bool:
            claimed.id = existing.id
            return not same_subset(
                claimed.to_representation(), existing.to_representation(), IDP_MAPPER_COMPARE_KEYS
            )

        plan = diff_by_name(current, mappers, name_of=lambda m: m.name, differs=differs, add_only=add_only)

        for mapper in plan.create:
            self._create_identity_provider_mapper(realm, mapper)
        for mapper, existing in plan.update:
            if mapper.identity_provider_alias == existing.identity_provider_alias:
                self._update_identity_provider_mapper(realm, mapper)
                continue
            self._delete_identity_provider_mapper(realm, existing)
            mapper.id = None
            self._create_identity_provider_mapper(realm, mapper)
        for mapper in plan.delete:
            self._delete_identity_provider_mapper(realm, mapper)

        if not plan.empty:
            self.log.info(
                "Realm %r IdP mappers synced: %d created, %d updated, %d deleted",
                realm, len(plan.create), len(plan.update), len(plan.delete),
            )

    def _create_identity_provider_mapper(self, realm: str, mapper: IdentityProviderMapper) -> None:
        self.client.post(
            f"/admin/realms/{realm}/identity-provider/instances/{mapper.identity_provider_alias}/mappers",
            json=mapper.to_representation(),
            operation=f"create identity provider mapper {mapper.name}",
        )

    def _update_identity_provider_mapper(self, realm: str, mapper: IdentityProviderMapper) -> None:
        self.client.put(
            f"/admin/realms/{realm}/identity-provider/instances/{mapper.identity_provider_alias}"
            f"/mappers/{mapper.id}",
            json=mapper.to_representation(),
            operation=f"update identity provider mapper {mapper.name}",
        )

    def _delete_identity_provider_mapper(self, realm: str, mapper: IdentityProviderMapper) -> None:
        self.client.delete(
            f"/admin/realms/{realm}/identity-provider/instances/{mapper.identity_provider_alias}"
            f"/mappers/{mapper.id}",
            operation=f"delete identity provider mapper {mapper.name}",
        )
