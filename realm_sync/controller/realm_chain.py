"""Ordered assembly of a realm and everything that hangs off it.

Each handler owns one concern, checks remote state before it mutates and may
therefore be re-run after a failure further down the chain.
"""
from __future__ import annotations
import logging
import secrets
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..core.context import Context
from ..core.keycloak.adapter import KeycloakAdapter
from ..core.keycloak.dto import ClientSpec, RealmSpec, RoleSpec
from ..core.keycloak.exceptions import ExecutionNotFoundError, KeycloakError, ValidationError
from .resources import KIND_CLIENT, InMemoryResourceStore, Resource
from .secrets import SecretStore

TARGET_REALM_LABEL = "targetRealm"
OPENID_CONFIG_ANNOTATION = "openid-configuration"
CLIENT_SECRET_KEY = "clientSecret"


def client_secret_name(realm_name: str) -> str:
    return f"keycloak-secret-{realm_name}"


class ChainStepError(KeycloakError):
    """A chain handler failed; nothing after it ran."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")


class RealmHandler(ABC):
    name = ""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger(__name__)

    @abstractmethod
    def serve(self, ctx: Context, realm: Resource, adapter: KeycloakAdapter) -> None:
        ...


class PutRealm(RealmHandler):
    name = "put-realm"

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        if adapter.realms.realm_exists(spec.name):
            self.log.debug("Realm %r already exists", spec.name)
            return
        adapter.realms.create_realm_with_default_config(spec)


class SetLabels(RealmHandler):
    """Label the realm resource with its target realm so dependents can find it."""
    name = "set-labels"

    def __init__(self, store: InMemoryResourceStore, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.store = store

    def serve(self, ctx, realm, adapter):
        if realm.labels.get(TARGET_REALM_LABEL) == realm.spec.name:
            return
        realm.labels[TARGET_REALM_LABEL] = realm.spec.name
        self.store.update(realm)


class PutKeycloakClient(RealmHandler):
    """Declare the companion client the central identity provider logs in with.

    The client lives in the SSO realm, is named after this realm and reads its
    secret from ``keycloak-secret-<realm>``.
    """
    name = "put-keycloak-client"

    def __init__(self, store: InMemoryResourceStore, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.store = store

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        if not spec.sso_realm_enabled:
            return
        if self.store.get(KIND_CLIENT, spec.name) is not None:
            return
        companion = Resource(
            kind=KIND_CLIENT,
            name=spec.name,
            spec=ClientSpec(
                realm=spec.sso_realm_name,
                client_id=spec.name,
                secret=client_secret_name(spec.name),
            ),
            labels={TARGET_REALM_LABEL: spec.sso_realm_name},
        )
        self.store.update(companion)
        self.log.info("Companion client %r declared in realm %r", spec.name, spec.sso_realm_name)


class PutKeycloakClientSecret(RealmHandler):
    name = "put-keycloak-client-secret"

    def __init__(self, secret_store: SecretStore, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.secret_store = secret_store

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        if not spec.sso_realm_enabled:
            return
        name = client_secret_name(spec.name)
        try:
            self.secret_store.get(name, CLIENT_SECRET_KEY)
        except ValidationError:
            self.secret_store.put(name, CLIENT_SECRET_KEY, secrets.token_urlsafe(32))
            self.log.info("Client secret %r generated", name)


class PutUsers(RealmHandler):
    name = "put-users"

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        for user in spec.users:
            if adapter.users.user_exists(spec.name, user.username):
                continue
            adapter.users.create_realm_user(spec.name, user.username)


class PutUsersRoles(RealmHandler):
    """Grant every declared realm role, creating roles that do not exist yet."""
    name = "put-users-roles"

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        for user in spec.users:
            for role in user.realm_roles:
                if not adapter.roles.realm_role_exists(spec.name, role):
                    adapter.roles.create_realm_role(spec.name, RoleSpec(realm=spec.name, name=role))
                if adapter.users.has_user_realm_role(spec.name, user.username, role):
                    continue
                adapter.users.add_realm_role_to_user(spec.name, user.username, role)


class PutOpenIdConfigAnnotation(RealmHandler):
    name = "put-openid-config-annotation"

    def __init__(self, store: InMemoryResourceStore, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.store = store

    def serve(self, ctx, realm, adapter):
        document = adapter.realms.get_openid_config(realm.spec.name)
        if realm.annotations.get(OPENID_CONFIG_ANNOTATION) == document:
            return
        realm.annotations[OPENID_CONFIG_ANNOTATION] = document
        self.store.update(realm)


class PutIdentityProvider(RealmHandler):
    """Create the central SSO provider and sync the declared IdP mappers."""
    name = "put-identity-provider"

    def __init__(self, secret_store: SecretStore, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.secret_store = secret_store

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        if spec.sso_realm_enabled and not adapter.identity_providers.central_identity_provider_exists(spec):
            client_secret = self.secret_store.get(client_secret_name(spec.name), CLIENT_SECRET_KEY)
            adapter.identity_providers.create_central_identity_provider(spec, spec.name, client_secret)

        if spec.identity_provider_mappers:
            adapter.realms.sync_realm_identity_provider_mappers(spec.name, spec.identity_provider_mappers)


class PutDefaultIdP(RealmHandler):
    name = "put-default-idp"

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        if not spec.sso_realm_enabled:
            return
        adapter.auth_flows.put_default_idp(spec)


class PutRealmSettings(RealmHandler):
    name = "put-realm-settings"

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        if spec.settings.is_empty():
            return
        adapter.realms.update_realm_settings(spec.name, spec.settings)


class PutAuthFlow(RealmHandler):
    name = "put-auth-flow"

    def serve(self, ctx, realm, adapter):
        spec: RealmSpec = realm.spec
        if not spec.browser_flow:
            return
        if not adapter.auth_flows.flow_exists(spec.name, spec.browser_flow):
            raise ExecutionNotFoundError(f"authentication flow '{spec.browser_flow}' not found in realm '{spec.name}'")
        adapter.realms.set_browser_flow(spec.name, spec.browser_flow)


def create_default_chain(
    store: InMemoryResourceStore,
    secret_store: SecretStore,
    logger: Optional[logging.Logger] = None,
) -> List[RealmHandler]:
    return [
        PutRealm(logger),
        SetLabels(store, logger),
        PutKeycloakClient(store, logger),
        PutKeycloakClientSecret(secret_store, logger),
        PutUsers(logger),
        PutUsersRoles(logger),
        PutOpenIdConfigAnnotation(store, logger),
        PutIdentityProvider(secret_store, logger),
        PutDefaultIdP(logger),
        PutRealmSettings(logger),
        PutAuthFlow(logger),
    ]


def run_chain(
    ctx: Context,
    chain: Sequence[RealmHandler],
    realm: Resource,
    adapter: KeycloakAdapter,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Serve ``realm`` through every handler in order.

    Raises:
        ChainStepError: For the first failing handler; later handlers do not run
        OperationCancelledError: If ``ctx`` fires between handlers
    """
    log = logger or logging.getLogger(__name__)
    for handler in chain:
        ctx.raise_if_cancelled(f"chain step {handler.name}")
        log.debug("Realm %r: %s", realm.spec.name, handler.name)
        try:
            handler.serve(ctx, realm, adapter)
        except KeycloakError as exc:
            raise ChainStepError(handler.name, exc) from exc
    log.info("Handling of realm %r has been finished", realm.spec.name)
