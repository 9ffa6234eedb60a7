"""Per-kind control loops sharing one reconcile flow.

A reconcile loads the resource, obtains an adapter, handles deletion through
the helper's finalizer life cycle and otherwise syncs the remote counterpart.
Failures end up on the resource status and in the returned result, never as
an exception to the scheduler.
"""
from __future__ import annotations
import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..core.context import Context
from ..core.keycloak.adapter import KeycloakAdapter
from ..core.keycloak.clients import default_protocol_mappers
from ..core.keycloak.dto import ClientSpec, ProtocolMapper, RoleSpec, UserSpec
from ..core.keycloak.exceptions import KeycloakError, TokenExpiredError
from .helper import Helper
from .realm_chain import CLIENT_SECRET_KEY, RealmHandler, run_chain
from .resources import KIND_CLIENT, KIND_REALM, KIND_REALM_ROLE, KIND_REALM_USER, Resource
from .secrets import SecretStore, resolve_user_password
from .terminator import RealmTerminator, Terminator

REALM_FINALIZER = "keycloak.realm.operator.finalizer.name"
CLIENT_FINALIZER = "keycloak.client.operator.finalizer.name"
REALM_USER_FINALIZER = "keycloak.realmuser.operator.finalizer.name"
REALM_ROLE_FINALIZER = "keycloak.realmrole.operator.finalizer.name"


@dataclass
class ReconcileResult:
    requeue: bool = False
    error: Optional[Exception] = None


def _is_token_expiry(err: Exception) -> bool:
    return isinstance(err, TokenExpiredError) or isinstance(getattr(err, "cause", None), TokenExpiredError)


class BaseReconciler(ABC):
    kind = ""
    finalizer = ""

    def __init__(self, helper: Helper, logger: Optional[logging.Logger] = None):
        self.helper = helper
        self.log = logger or logging.getLogger(__name__)

    @abstractmethod
    def terminator(self, resource: Resource, adapter: KeycloakAdapter) -> Terminator:
        ...

    @abstractmethod
    def sync(self, ctx: Context, resource: Resource, adapter: KeycloakAdapter) -> None:
        ...

    def reconcile(self, ctx: Context, name: str) -> ReconcileResult:
        """Reconcile the ``name`` resource of this kind once."""
        resource = self.helper.store.get(self.kind, name)
        if resource is None:
            self.log.debug("%s %r not found, nothing to do", self.kind, name)
            return ReconcileResult()

        self.log.info("Reconciling %s %r", self.kind, name)
        try:
            adapter = self.helper.create_adapter(ctx)
            if self.helper.try_to_delete(ctx, resource, self.terminator(resource, adapter), self.finalizer):
                self.log.info("%s %r released", self.kind, name)
                return ReconcileResult()
            self.sync(ctx, resource, adapter)
        except KeycloakError as exc:
            if _is_token_expiry(exc):
                self.helper.invalidate()
            self.log.error("Reconciling %s %r failed: %s", self.kind, name, exc)
            return self._failed(resource, exc)
        except Exception as exc:
            self.log.exception("Reconciling %s %r failed unexpectedly", self.kind, name)
            return self._failed(resource, exc)

        self.helper.set_ok_status(resource)
        self.log.info("%s %r synced", self.kind, name)
        return ReconcileResult()

    def _failed(self, resource: Resource, err: Exception) -> ReconcileResult:
        self.helper.set_error_status(resource, err)
        return ReconcileResult(requeue=True, error=err)


class RealmReconciler(BaseReconciler):
    kind = KIND_REALM
    finalizer = REALM_FINALIZER

    def __init__(self, helper: Helper, chain: Sequence[RealmHandler], logger: Optional[logging.Logger] = None):
        super().__init__(helper, logger)
        self.chain = list(chain)

    def terminator(self, resource, adapter):
        return RealmTerminator(resource.spec.name, adapter.realms.delete_realm, logger=self.log)

    def sync(self, ctx, resource, adapter):
        run_chain(ctx, self.chain, resource, adapter, self.log)


class ClientReconciler(BaseReconciler):
    """Clients name their secret; the value is read from the secret store at sync time."""
    kind = KIND_CLIENT
    finalizer = CLIENT_FINALIZER

    def __init__(self, helper: Helper, secret_store: SecretStore, logger: Optional[logging.Logger] = None):
        super().__init__(helper, logger)
        self.secret_store = secret_store

    def terminator(self, resource, adapter):
        spec: ClientSpec = resource.spec
        return Terminator(spec.realm, spec.client_id, adapter.clients.delete_client, kind="client", logger=self.log)

    def sync(self, ctx, resource, adapter):
        spec: ClientSpec = resource.spec
        secret = ""
        if spec.secret and not spec.public:
            secret = self.secret_store.get(spec.secret, CLIENT_SECRET_KEY)
        client = dataclasses.replace(spec, secret=secret)

        if adapter.clients.client_exists(client.realm, client.client_id):
            adapter.clients.update_client(client)
        else:
            adapter.clients.create_client(client)

        for role in client.client_roles:
            if not adapter.clients.client_role_exists(client.realm, client.client_id, role):
                adapter.clients.create_client_role(client.realm, client.client_id, role)

        desired: Optional[List[ProtocolMapper]] = client.protocol_mappers
        add_only = False
        if desired is None and client.advanced_protocol_mappers:
            desired, add_only = default_protocol_mappers(), True
        if desired is not None:
            adapter.clients.sync_protocol_mappers(client, desired, add_only)


class RealmUserReconciler(BaseReconciler):
    kind = KIND_REALM_USER
    finalizer = REALM_USER_FINALIZER

    def __init__(self, helper: Helper, secret_store: SecretStore, logger: Optional[logging.Logger] = None):
        super().__init__(helper, logger)
        self.secret_store = secret_store

    def terminator(self, resource, adapter):
        spec: UserSpec = resource.spec
        return Terminator(spec.realm, spec.username, adapter.users.delete_realm_user, kind="user", logger=self.log)

    def sync(self, ctx, resource, adapter):
        spec: UserSpec = resource.spec
        password = resolve_user_password(spec, self.secret_store)
        adapter.users.sync_realm_user(spec.realm, spec, password)


class RealmRoleReconciler(BaseReconciler):
    kind = KIND_REALM_ROLE
    finalizer = REALM_ROLE_FINALIZER

    def terminator(self, resource, adapter):
        spec: RoleSpec = resource.spec
        return Terminator(spec.realm, spec.name, adapter.roles.delete_realm_role, kind="role", logger=self.log)

    def sync(self, ctx, resource, adapter):
        adapter.roles.sync_realm_role(resource.spec.realm, resource.spec)
