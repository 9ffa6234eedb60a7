"""Shared plumbing for the control loops: adapter cache, finalizers and status."""
from __future__ import annotations
import logging
import threading
from typing import Callable, Optional

import requests

from ..config.settings import AUTH_SERVICE_ACCOUNT, AUTH_TOKEN_FILE, AppConfig
from ..core.context import Context
from ..core.keycloak.adapter import KeycloakAdapter
from ..core.keycloak.exceptions import ValidationError
from .resources import STATUS_OK, InMemoryResourceStore, Resource, Status
from .terminator import Terminator

STATUS_ERROR = "error"


class Helper:
    """Builds and caches the adapter and manages the deletion life cycle.

    The adapter is built lazily from settings and shared by every reconcile.
    It is rebuilt once its token has expired, and ``invalidate`` drops it when
    the token expires in the middle of a pass.
    """

    def __init__(
        self,
        settings: AppConfig,
        store: InMemoryResourceStore,
        *,
        adapter_factory: Optional[Callable[[AppConfig], KeycloakAdapter]] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings
        self.store = store
        self.session = session
        self.log = logger or logging.getLogger(__name__)
        self._adapter_factory = adapter_factory or self._build_adapter
        self._adapter: Optional[KeycloakAdapter] = None
        self._lock = threading.Lock()

    def _build_adapter(self, settings: AppConfig) -> KeycloakAdapter:
        method = settings.auth_method
        kwargs = {"session": self.session, "timeout": settings.request_timeout, "logger": self.log}
        if method == AUTH_TOKEN_FILE:
            try:
                token_data = settings.read_token()
            except OSError as exc:
                raise ValidationError(f"unable to read token file {settings.keycloak_token_file}: {exc}") from exc
            return KeycloakAdapter.make_from_token(settings.keycloak_url, token_data, **kwargs)
        if method == AUTH_SERVICE_ACCOUNT:
            return KeycloakAdapter.make_from_service_account(
                settings.keycloak_url,
                settings.keycloak_service_client_id,
                settings.keycloak_service_client_secret,
                settings.keycloak_service_realm,
                **kwargs,
            )
        return KeycloakAdapter.make(
            settings.keycloak_url, settings.keycloak_admin, settings.keycloak_admin_password, **kwargs
        )

    def create_adapter(self, ctx: Optional[Context] = None) -> KeycloakAdapter:
        """Return the cached adapter bound to ``ctx``, building it when missing or expired."""
        with self._lock:
            if self._adapter is None or self._adapter.token.expired:
                self._adapter = self._adapter_factory(self.settings)
                self.log.info("Keycloak adapter built (legacy layout: %s)", self._adapter.legacy_mode)
            adapter = self._adapter
        return adapter.bind(ctx)

    def invalidate(self) -> None:
        with self._lock:
            self._adapter = None

    def try_to_delete(self, ctx: Context, resource: Resource, terminator: Terminator, finalizer: str) -> bool:
        """Drive the finalizer life cycle of ``resource``.

        Returns False when the resource is live (the finalizer is ensured) and
        True when it was being deleted and has now been released. A failing
        terminator leaves the finalizer in place and propagates.
        """
        if not resource.deletion_requested:
            if not resource.has_finalizer(finalizer):
                resource.add_finalizer(finalizer)
                self.store.update(resource)
            return False

        if resource.has_finalizer(finalizer):
            ctx.raise_if_cancelled(f"delete {resource.kind} {resource.name}")
            if resource.keep_resource:
                self.log.info("%s %r keeps its remote counterpart", resource.kind, resource.name)
            else:
                terminator.delete()
            resource.remove_finalizer(finalizer)
            self.store.update(resource)

        if not resource.finalizers:
            self.store.remove(resource.kind, resource.name)
        return True

    def set_ok_status(self, resource: Resource) -> None:
        resource.status = Status(value=STATUS_OK)
        self.store.update_status(resource.kind, resource.name, resource.status)

    def set_error_status(self, resource: Resource, err: Exception) -> None:
        resource.status = Status(
            value=STATUS_ERROR,
            message=str(err),
            failure_count=resource.status.failure_count + 1,
        )
        self.store.update_status(resource.kind, resource.name, resource.status)
