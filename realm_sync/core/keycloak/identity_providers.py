"""Keycloak identity provider operations, including the central SSO provider."""
from __future__ import annotations
import logging
from typing import List, Optional

from .client import KeycloakClient
from .dto import IdentityProviderMapper, RealmSpec
from .exceptions import IdentityProviderNotFoundError, RemoteNotFoundError

CENTRAL_IDP_DISPLAY_NAME = "EDP SSO"
CENTRAL_IDP_PROVIDER_ID = "keycloak-oidc"
ROLE_TO_ROLE_MAPPER = "keycloak-oidc-role-to-role-idp-mapper"

# (external role suffix, local role) pairs created on the central provider.
CENTRAL_IDP_ROLE_MAPPINGS = (
    ("administrator", "administrator"),
    ("developer", "developer"),
    ("administrator", "realm-management.realm-admin"),
)


class IdentityProviderService:
    """Service for managing identity providers of a realm."""

    def __init__(self, client: KeycloakClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.log = logger or logging.getLogger(__name__)

    def identity_provider_exists(self, realm: str, alias: str) -> bool:
        return self.client.exists(
            f"/admin/realms/{realm}/identity-provider/instances/{alias}",
            operation=f"check identity provider {alias}",
        )

    def get_identity_provider(self, realm: str, alias: str) -> dict:
        """Return the identity provider representation.

        Raises:
            IdentityProviderNotFoundError: If no provider has that alias
        """
        try:
            body = self.client.get_json(
                f"/admin/realms/{realm}/identity-provider/instances/{alias}",
                operation=f"get identity provider {alias}",
            )
        except RemoteNotFoundError as exc:
            raise IdentityProviderNotFoundError(f"identity provider '{alias}' not found in realm '{realm}'") from exc
        return body

    def create_identity_provider(self, realm: str, representation: dict) -> None:
        self.client.post(
            f"/admin/realms/{realm}/identity-provider/instances",
            json=representation,
            operation=f"create identity provider {representation.get('alias')}",
        )
        self.log.info("Identity provider %r created in realm %r", representation.get("alias"), realm)

    def update_identity_provider(self, realm: str, representation: dict) -> None:
        alias = representation["alias"]
        self.client.put(
            f"/admin/realms/{realm}/identity-provider/instances/{alias}",
            json=representation,
            operation=f"update identity provider {alias}",
        )

    def delete_identity_provider(self, realm: str, alias: str) -> None:
        """Delete an identity provider.

        Raises:
            IdentityProviderNotFoundError: If it is already gone
        """
        try:
            self.client.delete(
                f"/admin/realms/{realm}/identity-provider/instances/{alias}",
                operation=f"delete identity provider {alias}",
            )
        except RemoteNotFoundError as exc:
            raise IdentityProviderNotFoundError(f"identity provider '{alias}' not found in realm '{realm}'") from exc
        self.log.info("Identity provider %r deleted from realm %r", alias, realm)

    # ─────────────────────────────────────────────────────────────────────
    # Central SSO provider
    # ─────────────────────────────────────────────────────────────────────
    def central_identity_provider_exists(self, realm: RealmSpec) -> bool:
        return self.identity_provider_exists(realm.name, realm.sso_realm_name)

    def central_identity_provider(self, realm: RealmSpec, client_id: str, client_secret: str) -> dict:
        """Representation of the OIDC provider pointing at the SSO realm."""
        sso = realm.sso_realm_name
        oidc = f"/realms/{sso}/protocol/openid-connect"
        return {
            "alias": sso,
            "displayName": CENTRAL_IDP_DISPLAY_NAME,
            "enabled": True,
            "providerId": CENTRAL_IDP_PROVIDER_ID,
            "config": {
                "userInfoUrl": self.client.build_path(f"{oidc}/userinfo"),
                "tokenUrl": self.client.build_path(f"{oidc}/token"),
                "jwksUrl": self.client.build_path(f"{oidc}/certs"),
                "issuer": self.client.build_path(f"/realms/{sso}"),
                "authorizationUrl": self.client.build_path(f"{oidc}/auth"),
                "logoutUrl": self.client.build_path(f"{oidc}/logout"),
                "clientId": client_id,
                "clientSecret": client_secret,
            },
        }

    def create_central_identity_provider(self, realm: RealmSpec, client_id: str, client_secret: str) -> None:
        """Create the central provider and, unless disabled, its default role mappers."""
        self.create_identity_provider(realm.name, self.central_identity_provider(realm, client_id, client_secret))
        if realm.disable_central_idp_mappers:
            return
        for mapper in central_idp_mappers(realm, client_id):
            self.create_identity_provider_mapper(realm.name, mapper)
        self.log.info("Central identity provider mappers created in realm %r", realm.name)

    def create_identity_provider_mapper(self, realm: str, mapper: IdentityProviderMapper) -> None:
        self.client.post(
            f"/admin/realms/{realm}/identity-provider/instances/{mapper.identity_provider_alias}/mappers",
            json=mapper.to_representation(),
            operation=f"create identity provider mapper {mapper.name}",
        )


def central_idp_mappers(realm: RealmSpec, client_id: str) -> List[IdentityProviderMapper]:
    return [
        IdentityProviderMapper(
            name=role,
            identity_provider_alias=realm.sso_realm_name,
            identity_provider_mapper=ROLE_TO_ROLE_MAPPER,
            config={"external.role": f"{client_id}.{suffix}", "role": role},
        )
        for suffix, role in CENTRAL_IDP_ROLE_MAPPINGS
    ]
