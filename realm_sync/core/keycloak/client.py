"""Low-level HTTP client for Keycloak Admin API.

Handles authentication, legacy/modern URL layout detection and HTTP operations.
The layout is detected once by the ``make*`` constructors; a built client never
re-detects it and never refreshes its token in place.
"""
from __future__ import annotations
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional, Tuple

import requests

from .dto import Token
from .exceptions import (
    ConflictError,
    KeycloakAPIError,
    RemoteNotFoundError,
    TokenExpiredError,
    TransportError,
    ValidationError,
)

if TYPE_CHECKING:
    from ..context import Context

REQUEST_TIMEOUT = 5
LEGACY_PREFIX = "/auth"
ADMIN_CLI_CLIENT_ID = "admin-cli"


def _token_url(realm: str) -> str:
    return f"/realms/{realm}/protocol/openid-connect/token"


class KeycloakClient:
    """HTTP client for Keycloak Admin API bound to one session token.

    Usage:
        client = KeycloakClient.make("http://keycloak:8080", "admin", "password")
        resp = client.get("/admin/realms/demo/users", operation="list users")
    """

    def __init__(
        self,
        base_url: str,
        token: Token,
        *,
        legacy_mode: bool = False,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
        ctx: Optional["Context"] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._legacy_mode = legacy_mode
        self.session = session or requests.Session()
        self.timeout = timeout
        self.log = logger or logging.getLogger(__name__)
        self.ctx = ctx

    # ─────────────────────────────────────────────────────────────────────
    # Construction: detect the layout once, then build an immutable client
    # ─────────────────────────────────────────────────────────────────────
    @classmethod
    def make(
        cls,
        base_url: str,
        username: str,
        password: str,
        *,
        realm: str = "master",
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> "KeycloakClient":
        """Log in with static admin credentials (password grant on admin-cli)."""
        session = session or requests.Session()
        form = {
            "grant_type": "password",
            "client_id": ADMIN_CLI_CLIENT_ID,
            "username": username,
            "password": password,
        }
        token, legacy = cls._login(base_url, realm, form, session, timeout, f"admin login as {username}")
        return cls(base_url, token, legacy_mode=legacy, session=session, timeout=timeout, logger=logger)

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
    ) -> "KeycloakClient":
        """Log in with client credentials of a service-account client."""
        session = session or requests.Session()
        form = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        token, legacy = cls._login(
            base_url, realm, form, session, timeout, f"service account login clientID={client_id} realm={realm}"
        )
        return cls(base_url, token, legacy_mode=legacy, session=session, timeout=timeout, logger=logger)

    @classmethod
    def make_from_token(
        cls,
        base_url: str,
        token_data: bytes | str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> "KeycloakClient":
        """Reuse a pre-issued token (as produced by ``export_token``).

        Raises:
            ValidationError: If the token data is not a decodable token JSON
            TokenExpiredError: If the token is already expired (no request is made)
        """
        try:
            payload = json.loads(token_data)
        except ValueError as exc:
            raise ValidationError(f"unable to decode token json data: {exc}") from exc

        token = Token.from_payload(payload)
        if token.expired:
            raise TokenExpiredError("token is expired")

        session = session or requests.Session()
        legacy = cls._detect_layout_from_realm_list(base_url, token, session, timeout)
        return cls(base_url, token, legacy_mode=legacy, session=session, timeout=timeout, logger=logger)

    @staticmethod
    def _login(
        base_url: str,
        realm: str,
        form: Dict[str, str],
        session: requests.Session,
        timeout: float,
        operation: str,
    ) -> Tuple[Token, bool]:
        base_url = base_url.rstrip("/")
        for legacy in (False, True):
            url = base_url + (LEGACY_PREFIX if legacy else "") + _token_url(realm)
            try:
                resp = session.request("POST", url, data=form, timeout=timeout)
            except requests.RequestException as exc:
                raise TransportError(f"{operation}: {exc}") from exc
            if resp.status_code == 404 and not legacy:
                continue
            if resp.status_code != 200:
                layout = "legacy" if legacy else "modern"
                raise KeycloakAPIError(resp.status_code, resp.text, url, f"{operation} ({layout} layout)")
            return Token.from_payload(KeycloakClient.read_json(resp, operation)), legacy
        raise AssertionError("unreachable")

    @staticmethod
    def _detect_layout_from_realm_list(
        base_url: str, token: Token, session: requests.Session, timeout: float
    ) -> bool:
        """Return True when only the legacy ``/auth`` layout answers the realm list."""
        base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token.access_token}"}
        for legacy in (False, True):
            url = base_url + (LEGACY_PREFIX if legacy else "") + "/admin/realms"
            try:
                resp = session.request("GET", url, headers=headers, timeout=timeout)
            except requests.RequestException as exc:
                raise TransportError(f"detect layout from realm list: {exc}") from exc
            if resp.status_code == 404 and not legacy:
                continue
            if resp.status_code != 200:
                raise KeycloakAPIError(resp.status_code, resp.text, url, "detect layout from realm list")
            return legacy
        raise AssertionError("unreachable")

    # ─────────────────────────────────────────────────────────────────────
    # Session state
    # ─────────────────────────────────────────────────────────────────────
    @property
    def legacy_mode(self) -> bool:
        return self._legacy_mode

    @property
    def token(self) -> Token:
        return self._token

    def export_token(self) -> bytes:
        """Return the token JSON so it can be stored and passed to ``make_from_token``."""
        return json.dumps(self._token.raw).encode("utf-8")

    def bind(self, ctx: Optional["Context"]) -> "KeycloakClient":
        """Return a client sharing session and token that honours ``ctx``."""
        clone = KeycloakClient.__new__(KeycloakClient)
        clone.__dict__.update(self.__dict__)
        clone.ctx = ctx
        return clone

    def build_path(self, endpoint: str) -> str:
        """Return the absolute URL of ``endpoint`` for the layout in use."""
        prefix = LEGACY_PREFIX if self._legacy_mode else ""
        return f"{self.base_url}{prefix}{endpoint}"

    # ─────────────────────────────────────────────────────────────────────
    # HTTP verbs
    # ─────────────────────────────────────────────────────────────────────
    def get(
        self,
        path: str,
        *,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        expected: Iterable[int] = (200,),
        auth: bool = True,
    ) -> requests.Response:
        return self.request("GET", path, operation=operation, params=params, expected=expected, auth=auth)

    def post(
        self,
        path: str,
        *,
        operation: str,
        json: Any = None,
        expected: Iterable[int] = (201,),
    ) -> requests.Response:
        return self.request("POST", path, operation=operation, json=json, expected=expected)

    def put(
        self,
        path: str,
        *,
        operation: str,
        json: Any = None,
        expected: Iterable[int] = (200, 204),
    ) -> requests.Response:
        return self.request("PUT", path, operation=operation, json=json, expected=expected)

    def delete(
        self,
        path: str,
        *,
        operation: str,
        json: Any = None,
        expected: Iterable[int] = (204,),
    ) -> requests.Response:
        return self.request("DELETE", path, operation=operation, json=json, expected=expected)

    def get_json(self, path: str, *, operation: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET ``path`` and return its decoded JSON body."""
        return self.read_json(self.get(path, operation=operation, params=params), operation)

    @staticmethod
    def read_json(resp: requests.Response, operation: str) -> Any:
        """Decode a response body; a body that is not JSON is a transport failure."""
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(f"{operation}: response is not valid JSON: {exc}") from exc

    def exists(self, path: str, *, operation: str, params: Optional[Dict[str, Any]] = None) -> bool:
        """GET ``path``; 404 is a successful False, anything but 200/404 is an error."""
        resp = self.request("GET", path, operation=operation, params=params, expected=(200, 404))
        return resp.status_code == 200

    def request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        expected: Iterable[int] = (200,),
        auth: bool = True,
    ) -> requests.Response:
        """Execute one request against the admin API.

        Raises:
            OperationCancelledError: If the bound context is cancelled
            TokenExpiredError: If the session token expired
            TransportError: On network failure
            KeycloakAPIError: On a status outside ``expected``
        """
        timeout = self.timeout
        if self.ctx is not None:
            self.ctx.raise_if_cancelled(operation)
            remaining = self.ctx.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)

        headers = {}
        if auth:
            if self._token.expired:
                raise TokenExpiredError(f"{operation}: token is expired")
            headers["Authorization"] = f"Bearer {self._token.access_token}"

        url = self.build_path(path)
        try:
            resp = self.session.request(method, url, params=params, json=json, headers=headers, timeout=timeout)
        except requests.RequestException as exc:
            raise TransportError(f"{operation}: {exc}") from exc

        self._handle_error(resp, url, operation, tuple(expected))
        return resp

    @staticmethod
    def _handle_error(resp: requests.Response, url: str, operation: str, expected: Tuple[int, ...]) -> None:
        """Centralized error handling for HTTP responses."""
        if resp.status_code in expected:
            return
        if resp.status_code == 404:
            raise RemoteNotFoundError(resp.status_code, resp.text, url, operation)
        if resp.status_code == 409:
            raise ConflictError(resp.status_code, resp.text, url, operation)
        raise KeycloakAPIError(resp.status_code, resp.text, url, operation)
