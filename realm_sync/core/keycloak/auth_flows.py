"""Keycloak authentication flow operations."""
from __future__ import annotations
import logging
from typing import List, Optional

from .client import KeycloakClient
from .dto import RealmSpec
from .exceptions import ExecutionNotFoundError

IDP_REDIRECTOR_PROVIDER = "identity-provider-redirector"
REDIRECT_CONFIG_ALIAS = "edp-sso"


class AuthFlowService:
    """Service for browser flow executions and authentication flows."""

    def __init__(self, client: KeycloakClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.log = logger or logging.getLogger(__name__)

    def get_browser_executions(self, realm: str) -> List[dict]:
        body = self.client.get_json(
            f"/admin/realms/{realm}/authentication/flows/browser/executions",
            operation="get browser executions",
        )
        return body or []

    def get_idp_redirect_execution(self, realm: str) -> dict:
        """Return the identity provider redirector of the browser flow.

        Raises:
            ExecutionNotFoundError: If the browser flow has no redirector
        """
        for execution in self.get_browser_executions(realm):
            if execution.get("providerId") == IDP_REDIRECTOR_PROVIDER:
                return execution
        raise ExecutionNotFoundError(f"identity provider redirector not found in realm '{realm}'")

    def put_default_idp(self, realm: RealmSpec) -> None:
        """Point the browser flow redirector at the SSO realm provider.

        An existing redirector config is updated in place when it points elsewhere.
        A new one is created and, when auto redirect is off, the redirector is
        disabled.
        """
        execution = self.get_idp_redirect_execution(realm.name)
        body = {"alias": REDIRECT_CONFIG_ALIAS, "config": {"defaultProvider": realm.sso_realm_name}}

        config_id = execution.get("authenticationConfig")
        if config_id:
            current = self.client.get_json(
                f"/admin/realms/{realm.name}/authentication/config/{config_id}",
                operation="get redirect config",
            ) or {}
            if (current.get("config") or {}).get("defaultProvider") == realm.sso_realm_name:
                return
            self.client.put(
                f"/admin/realms/{realm.name}/authentication/config/{config_id}",
                json={**body, "id": config_id},
                operation="update redirect config",
            )
            self.log.info("Default identity provider redirector updated in realm %r", realm.name)
            return

        self.client.post(
            f"/admin/realms/{realm.name}/authentication/executions/{execution['id']}/config",
            json=body,
            operation="create redirect config",
        )
        if not realm.sso_auto_redirect_enabled:
            self.client.put(
                f"/admin/realms/{realm.name}/authentication/flows/browser/executions",
                json={"id": execution["id"], "requirement": "DISABLED"},
                operation="disable identity provider redirector",
                expected=(202, 204),
            )
        self.log.info("Default identity provider redirector configured in realm %r", realm.name)

    def get_flows(self, realm: str) -> List[dict]:
        body = self.client.get_json(
            f"/admin/realms/{realm}/authentication/flows", operation="list authentication flows"
        )
        return body or []

    def flow_exists(self, realm: str, alias: str) -> bool:
        return any(flow.get("alias") == alias for flow in self.get_flows(realm))
