"""Keycloak Admin API adapter.

This package provides idempotent, diff-based synchronization primitives on top
of the Keycloak Admin API.

Architecture:
- client.py: HTTP client with login, legacy/modern layout detection and token handling
- adapter.py: Facade owning one client and every service below
- realm.py: Realm lifecycle, settings and identity provider mapper sync
- clients.py: Client lifecycle, client roles and protocol mapper sync
- users.py: User lifecycle, role and group membership
- roles.py: Realm roles and composites
- identity_providers.py: Central SSO provider and generic providers
- auth_flows.py: Browser flow redirector and flow lookup
- sync.py: Name-keyed diff shared by the mapper syncs
- dto.py: Typed representations
- exceptions.py: Typed exceptions for error handling

Usage:
    from realm_sync.core.keycloak import KeycloakAdapter

    adapter = KeycloakAdapter.make("http://keycloak:8080", "admin", "password")
    adapter.clients.sync_protocol_mappers(spec, mappers, add_only=False)
"""
from .adapter import KeycloakAdapter
from .auth_flows import AuthFlowService
from .client import KeycloakClient, REQUEST_TIMEOUT
from .clients import ClientService, default_protocol_mappers
from .dto import (
    ClientSpec,
    IdentityProviderMapper,
    PasswordPolicy,
    ProtocolMapper,
    RealmSettings,
    RealmSpec,
    RealmThemes,
    RealmUser,
    RoleSpec,
    SecretRef,
    Token,
    UserSpec,
    decode_identity_provider_mapper,
)
from .exceptions import (
    KeycloakError,
    KeycloakAPIError,
    TransportError,
    NotFoundError,
    RemoteNotFoundError,
    ConflictError,
    TokenExpiredError,
    ValidationError,
    OperationCancelledError,
    RealmNotFoundError,
    ClientNotFoundError,
    UserNotFoundError,
    RoleNotFoundError,
    GroupNotFoundError,
    ExecutionNotFoundError,
    IdentityProviderNotFoundError,
)
from .identity_providers import IdentityProviderService
from .realm import RealmService
from .roles import RoleService
from .users import UserService

__all__ = [
    # Client
    "KeycloakAdapter",
    "KeycloakClient",
    "REQUEST_TIMEOUT",

    # Exceptions
    "KeycloakError",
    "KeycloakAPIError",
    "TransportError",
    "NotFoundError",
    "RemoteNotFoundError",
    "ConflictError",
    "TokenExpiredError",
    "ValidationError",
    "OperationCancelledError",
    "RealmNotFoundError",
    "ClientNotFoundError",
    "UserNotFoundError",
    "RoleNotFoundError",
    "GroupNotFoundError",
    "ExecutionNotFoundError",
    "IdentityProviderNotFoundError",

    # Services
    "RealmService",
    "ClientService",
    "UserService",
    "RoleService",
    "IdentityProviderService",
    "AuthFlowService",
    "default_protocol_mappers",

    # Representations
    "ClientSpec",
    "IdentityProviderMapper",
    "PasswordPolicy",
    "ProtocolMapper",
    "RealmSettings",
    "RealmSpec",
    "RealmThemes",
    "RealmUser",
    "RoleSpec",
    "SecretRef",
    "Token",
    "UserSpec",
    "decode_identity_provider_mapper",
]
