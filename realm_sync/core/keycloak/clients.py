"""Keycloak client (OAuth2/OIDC application) operations."""
from __future__ import annotations
import logging
from typing import Dict, List, Optional

from .client import KeycloakClient
from .dto import OPENID_CONNECT, ClientSpec, ProtocolMapper
from .exceptions import ClientNotFoundError, RemoteNotFoundError
from .sync import diff_by_name, same_subset

MAPPER_COMPARE_KEYS = ("protocol", "protocolMapper", "config")


def default_protocol_mappers() -> List[ProtocolMapper]:
    """Mappers attached to clients that ask for advanced protocol mappers."""
    return [
        ProtocolMapper(
            name="username",
            protocol_mapper="oidc-usermodel-property-mapper",
            config={
                "userinfo.token.claim": "true",
                "user.attribute": "username",
                "id.token.claim": "true",
                "access.token.claim": "true",
                "claim.name": "preferred_username",
                "jsonType.label": "String",
            },
        ),
        ProtocolMapper(
            name="realm roles",
            protocol_mapper="oidc-usermodel-realm-role-mapper",
            config={
                "userinfo.token.claim": "true",
                "multivalued": "true",
                "id.token.claim": "true",
                "access.token.claim": "false",
                "claim.name": "roles",
                "jsonType.label": "String",
            },
        ),
    ]


def client_representation(spec: ClientSpec, client_uuid: Optional[str] = None) -> dict:
    """Build the Keycloak client representation for ``spec``."""
    rep = {
        "clientId": spec.client_id,
        "publicClient": spec.public,
        "directAccessGrantsEnabled": spec.direct_access,
        "serviceAccountsEnabled": spec.service_account_enabled,
        "frontchannelLogout": spec.front_channel_logout,
        "rootUrl": spec.web_url,
        "adminUrl": spec.web_url,
        "protocol": spec.protocol or OPENID_CONNECT,
        "attributes": dict(spec.attributes),
        "redirectUris": [f"{spec.web_url}/*"] if spec.web_url else [],
        "webOrigins": [spec.web_url] if spec.web_url else [],
    }
    if spec.secret:
        rep["secret"] = spec.secret
    if spec.advanced_protocol_mappers:
        rep["protocolMappers"] = [m.to_representation() for m in default_protocol_mappers()]
    uuid = client_uuid or spec.id
    if uuid:
        rep["id"] = uuid
    return rep


class ClientService:
    """Service for managing clients of a realm."""

    def __init__(self, client: KeycloakClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.log = logger or logging.getLogger(__name__)

    def _find(self, realm: str, client_id: str) -> Optional[dict]:
        body = self.client.get_json(
            f"/admin/realms/{realm}/clients",
            params={"clientId": client_id},
            operation=f"list clients of realm {realm}",
        )
        return next((c for c in body or [] if c.get("clientId") == client_id), None)

    def client_exists(self, realm: str, client_id: str) -> bool:
        """Return True when a client with exactly ``client_id`` exists."""
        return self._find(realm, client_id) is not None

    def get_client_id(self, realm: str, client_id: str) -> str:
        """Resolve the remote UUID of ``client_id``.

        Raises:
            ClientNotFoundError: If no client matches
        """
        found = self._find(realm, client_id)
        if found is None:
            raise ClientNotFoundError(f"client '{client_id}' doesn't exist in realm '{realm}'")
        return found["id"]

    def create_client(self, spec: ClientSpec) -> None:
        self.client.post(
            f"/admin/realms/{spec.realm}/clients",
            json=client_representation(spec),
            operation=f"create client {spec.client_id}",
        )
        self.log.info("Client %r created in realm %r", spec.client_id, spec.realm)

    def update_client(self, spec: ClientSpec) -> None:
        client_uuid = self.get_client_id(spec.realm, spec.client_id)
        rep = client_representation(spec, client_uuid)
        # Mappers are reconciled separately by sync_protocol_mappers.
        rep.pop("protocolMappers", None)
        self.client.put(
            f"/admin/realms/{spec.realm}/clients/{client_uuid}",
            json=rep,
            operation=f"update client {spec.client_id}",
        )
        self.log.info("Client %r updated in realm %r", spec.client_id, spec.realm)

    def delete_client(self, realm: str, client_id: str) -> None:
        """Delete a client by its human-readable id.

        Raises:
            ClientNotFoundError: If the client is already gone
        """
        client_uuid = self.get_client_id(realm, client_id)
        try:
            self.client.delete(f"/admin/realms/{realm}/clients/{client_uuid}", operation=f"delete client {client_id}")
        except RemoteNotFoundError as exc:
            raise ClientNotFoundError(f"client '{client_id}' doesn't exist in realm '{realm}'") from exc
        self.log.info("Client %r deleted from realm %r", client_id, realm)

    def get_client_secret(self, realm: str, client_id: str) -> str:
        client_uuid = self.get_client_id(realm, client_id)
        body = self.client.get_json(
            f"/admin/realms/{realm}/clients/{client_uuid}/client-secret",
            operation=f"get secret of client {client_id}",
        )
        return (body or {}).get("value", "")

    def client_role_exists(self, realm: str, client_id: str, role: str) -> bool:
        client_uuid = self.get_client_id(realm, client_id)
        return self.client.exists(
            f"/admin/realms/{realm}/clients/{client_uuid}/roles/{role}",
            operation=f"check role {role} of client {client_id}",
        )

    def create_client_role(self, realm: str, client_id: str, role: str) -> None:
        client_uuid = self.get_client_id(realm, client_id)
        self.client.post(
            f"/admin/realms/{realm}/clients/{client_uuid}/roles",
            json={"name": role, "clientRole": True},
            operation=f"create role {role} of client {client_id}",
        )
        self.log.info("Client role %r created on %r", role, client_id)

    def get_protocol_mappers(self, realm: str, client_uuid: str) -> List[ProtocolMapper]:
        body = self.client.get_json(
            f"/admin/realms/{realm}/clients/{client_uuid}/protocol-mappers/models",
            operation="get client protocol mappers",
        )
        return [ProtocolMapper.from_representation(rep) for rep in body or []]

    def sync_protocol_mappers(self, spec: ClientSpec, desired: List[ProtocolMapper], add_only: bool) -> None:
        """Make the client's protocol mappers match ``desired`` by name.

        Missing mappers are created, mappers present on both sides get the remote
        id and are updated only when protocol, type or config differ. Unless
        ``add_only``, remote mappers whose name is not desired are deleted.
        """
        client_uuid = self.get_client_id(spec.realm, spec.client_id)
        current: Dict[str, ProtocolMapper] = {m.name: m for m in self.get_protocol_mappers(spec.realm, client_uuid)}

        for mapper in desired:
            if mapper.config is None:
                mapper.config = {}

        def differs(claimed: ProtocolMapper, existing: ProtocolMapper) -> bool:
            claimed.id = existing.id
            return not same_subset(claimed.to_representation(), existing.to_representation(), MAPPER_COMPARE_KEYS)

        plan = diff_by_name(current, desired, name_of=lambda m: m.name, differs=differs, add_only=add_only)
        base = f"/admin/realms/{spec.realm}/clients/{client_uuid}/protocol-mappers/models"

        for mapper in plan.create:
            self.client.post(base, json=mapper.to_representation(), operation=f"create protocol mapper {mapper.name}")
        for mapper, _ in plan.update:
            self.client.put(
                f"{base}/{mapper.id}",
                json=mapper.to_representation(),
                operation=f"update protocol mapper {mapper.name}",
            )
        for mapper in plan.delete:
            self.client.delete(f"{base}/{mapper.id}", operation=f"delete protocol mapper {mapper.name}")

        self.log.info(
            "Client %r protocol mappers synced: %d created, %d updated, %d deleted",
            spec.client_id, len(plan.create), len(plan.update), len(plan.delete),
        )
