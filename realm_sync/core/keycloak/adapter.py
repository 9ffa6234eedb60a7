"""Facade bundling one authenticated client with every entity service."""
from __future__ import annotations
import logging
from typing import Optional, TYPE_CHECKING

import requests

from .auth_flows import AuthFlowService
from .client import REQUEST_TIMEOUT, KeycloakClient
from .clients import ClientService
from .dto import Token
from .identity_providers import IdentityProviderService
from .realm import RealmService
from .roles import RoleService
from .users import UserService

if TYPE_CHECKING:
    from ..context import Context


class KeycloakAdapter:
    """The unit handed to chain steps and reconcilers.

    Usage:
        adapter = KeycloakAdapter.make("http://keycloak:8080", "admin", "password")
        if not adapter.realms.realm_exists("demo"):
            ...
    """

    def __init__(self, client: KeycloakClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.log = logger or logging.getLogger(__name__)
        self.realms = RealmService(client, self.log)
        self.clients = ClientService(client, self.log)
        self.users = UserService(client, self.log)
        self.roles = RoleService(client, self.log)
        self.identity_providers = IdentityProviderService(client, self.log)
        self.auth_flows = AuthFlowService(client, self.log)

    @classmethod
    def make(
        cls,
        base_url: str,
        username: str,
        password: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> "KeycloakAdapter":
        client = KeycloakClient.make(base_url, username, password, session=session, timeout=timeout, logger=logger)
        return cls(client, logger)

    @classmethod
    def make_from_token(
        cls,
        base_url: str,
        token_data: bytes | str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> "KeycloakAdapter":
        client = KeycloakClient.make_from_token(base_url, token_data, session=session, timeout=timeout, logger=logger)
        return cls(client, logger)

    @classmethod
    def make_from_service_account(
        cls,
        base_url: str,
        client_id: str,
        client_secret: str,
        realm: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> "KeycloakAdapter":
        client = KeycloakClient.make_from_service_account(
            base_url, client_id, client_secret, realm, session=session, timeout=timeout, logger=logger
        )
        return cls(client, logger)

    @property
    def legacy_mode(self) -> bool:
        return self.client.legacy_mode

    @property
    def token(self) -> Token:
        return self.client.token

    def export_token(self) -> bytes:
        return self.client.export_token()

    def bind(self, ctx: Optional["Context"]) -> "KeycloakAdapter":
        """Return an adapter whose every call honours ``ctx``."""
        return KeycloakAdapter(self.client.bind(ctx), self.log)
