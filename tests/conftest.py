"""Pytest shared fixtures: an in-memory Keycloak admin API behind a fake session."""
import copy
import itertools
import json
import pathlib
import re
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import jwt
import pytest
import requests

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from realm_sync.core.keycloak.adapter import KeycloakAdapter


def make_access_token(expires_in: int = 300) -> str:
    """HS256 JWT with an ``exp`` claim; the adapter never verifies the signature."""
    return jwt.encode({"exp": int(time.time()) + expires_in, "sub": "admin"}, "test-secret", algorithm="HS256")


def make_token_data(expires_in: int = 300) -> str:
    return json.dumps({"access_token": make_access_token(expires_in), "expires_in": expires_in, "token_type": "Bearer"})


class _StubResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        if self._payload is None and self.text:
            raise requests.exceptions.JSONDecodeError("Expecting value", self.text, 0)
        return self._payload


class _HttpError(Exception):
    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass
class Call:
    method: str
    path: str
    params: Optional[Dict[str, Any]]
    json: Any
    headers: Dict[str, str]


def _new_realm_state(name: str, flows: List[str]) -> Dict[str, Any]:
    default_role = f"default-roles-{name}"
    return {
        "rep": {"id": name, "realm": name, "enabled": True, "browserFlow": "browser", "attributes": {}},
        "clients": {},
        "client_roles": {},
        "mappers": {},
        "users": {},
        "user_roles": {},
        "user_client_roles": {},
        "user_groups": {},
        "passwords": {},
        "groups": {},
        "roles": {
            role: {"id": f"role-{role}", "name": role, "description": "", "composite": False, "attributes": {}}
            for role in ("offline_access", "uma_authorization", default_role)
        },
        "composites": {},
        "idps": {},
        "idp_mappers": {},
        "executions": [
            {"id": "exec-cookie", "providerId": "auth-cookie", "requirement": "ALTERNATIVE"},
            {"id": "exec-redirector", "providerId": "identity-provider-redirector", "requirement": "ALTERNATIVE"},
        ],
        "exec_configs": {},
        "flows": [{"id": f"flow-{alias}", "alias": alias} for alias in flows],
    }


class FakeKeycloak:
    """Minimal stateful Keycloak admin API, passed to the client as its ``session``.

    ``legacy=True`` serves everything under ``/auth`` only; the other layout
    answers 404. Every request is recorded in ``calls``.
    """

    def __init__(self, base_url: str = "http://keycloak.test", legacy: bool = False):
        self.base_url = base_url
        self.legacy = legacy
        self.admin_credentials = {"admin": "admin"}
        self.service_accounts = {"automation-cli": "automation-secret"}
        self.default_flows = ["browser", "direct grant", "registration"]
        self.realms: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Call] = []
        self._failures: List[tuple] = []
        self._ids = itertools.count(1)
        self._routes = self._build_routes()

    # ─────────────────────────────────────────────────────────────────────
    # Test helpers
    # ─────────────────────────────────────────────────────────────────────
    def fail(
        self, method: str, pattern: str, status_code: int, times: Optional[int] = None, body: Optional[str] = None
    ) -> None:
        """Answer ``status_code`` to ``method`` requests whose path fully matches ``pattern``.

        With ``body`` the answer carries that raw text instead of a JSON error.
        """
        self._failures.append([method, re.compile(pattern), status_code, times, body])

    def add_realm(self, name: str) -> Dict[str, Any]:
        self.realms[name] = _new_realm_state(name, self.default_flows)
        return self.realms[name]

    def add_group(self, realm: str, name: str) -> str:
        gid = self._next_id("group")
        self.realms[realm]["groups"][gid] = {"id": gid, "name": name, "path": f"/{name}"}
        return gid

    def writes(self, since: int = 0) -> List[Call]:
        return [c for c in self.calls[since:] if c.method in ("POST", "PUT", "DELETE")]

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self.realms)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # ─────────────────────────────────────────────────────────────────────
    # Session interface
    # ─────────────────────────────────────────────────────────────────────
    def request(self, method, url, params=None, json=None, data=None, headers=None, timeout=None):
        path = urlsplit(url).path
        self.calls.append(Call(method, path, copy.deepcopy(params), copy.deepcopy(json), dict(headers or {})))

        for failure in self._failures:
            fmethod, pattern, status, times, body = failure
            if fmethod == method and pattern.fullmatch(path) and times != 0:
                if times is not None:
                    failure[3] = times - 1
                if body is not None:
                    return _StubResponse(status, text=body)
                return _StubResponse(status, {"error": "injected"})

        prefix = "/auth"
        if self.legacy:
            if not path.startswith(prefix + "/"):
                return _StubResponse(404, {"error": "Not Found"})
            path = path[len(prefix):]
        elif path.startswith(prefix + "/"):
            return _StubResponse(404, {"error": "Not Found"})

        if path.startswith("/admin/"):
            auth = (headers or {}).get("Authorization", "")
            if not auth.startswith("Bearer "):
                return _StubResponse(401, {"error": "unauthorized"})

        for route_method, pattern, handler in self._routes:
            if route_method != method:
                continue
            match = pattern.fullmatch(path)
            if match is None:
                continue
            try:
                return handler(params=params or {}, body=json, form=data, **match.groupdict())
            except _HttpError as exc:
                return _StubResponse(exc.status_code, {"errorMessage": exc.message})
        return _StubResponse(404, {"error": "Not Found"})

    def _build_routes(self):
        realm = r"/admin/realms/(?P<realm>[^/]+)"
        routes = [
            ("POST", r"/realms/(?P<realm>[^/]+)/protocol/openid-connect/token", self._token),
            ("GET", r"/realms/(?P<realm>[^/]+)/\.well-known/openid-configuration", self._openid_config),
            ("GET", r"/admin/realms", self._list_realms),
            ("POST", r"/admin/realms", self._create_realm),
            ("GET", realm, self._get_realm),
            ("PUT", realm, self._update_realm),
            ("DELETE", realm, self._delete_realm),
            # clients
            ("GET", realm + r"/clients", self._list_clients),
            ("POST", realm + r"/clients", self._create_client),
            ("PUT", realm + r"/clients/(?P<uuid>[^/]+)", self._update_client),
            ("DELETE", realm + r"/clients/(?P<uuid>[^/]+)", self._delete_client),
            ("GET", realm + r"/clients/(?P<uuid>[^/]+)/client-secret", self._client_secret),
            ("GET", realm + r"/clients/(?P<uuid>[^/]+)/roles/(?P<role>[^/]+)", self._get_client_role),
            ("POST", realm + r"/clients/(?P<uuid>[^/]+)/roles", self._create_client_role),
            ("GET", realm + r"/clients/(?P<uuid>[^/]+)/protocol-mappers/models", self._list_mappers),
            ("POST", realm + r"/clients/(?P<uuid>[^/]+)/protocol-mappers/models", self._create_mapper),
            ("PUT", realm + r"/clients/(?P<uuid>[^/]+)/protocol-mappers/models/(?P<mid>[^/]+)", self._update_mapper),
            ("DELETE", realm + r"/clients/(?P<uuid>[^/]+)/protocol-mappers/models/(?P<mid>[^/]+)", self._delete_mapper),
            # users
            ("GET", realm + r"/users", self._list_users),
            ("POST", realm + r"/users", self._create_user),
            ("PUT", realm + r"/users/(?P<uid>[^/]+)", self._update_user),
            ("DELETE", realm + r"/users/(?P<uid>[^/]+)", self._delete_user),
            ("PUT", realm + r"/users/(?P<uid>[^/]+)/reset-password", self._reset_password),
            ("GET", realm + r"/users/(?P<uid>[^/]+)/role-mappings/realm", self._user_realm_roles),
            ("POST", realm + r"/users/(?P<uid>[^/]+)/role-mappings/realm", self._add_user_realm_roles),
            ("DELETE", realm + r"/users/(?P<uid>[^/]+)/role-mappings/realm", self._remove_user_realm_roles),
            ("GET", realm + r"/users/(?P<uid>[^/]+)/role-mappings/clients/(?P<uuid>[^/]+)", self._user_client_roles),
            ("POST", realm + r"/users/(?P<uid>[^/]+)/role-mappings/clients/(?P<uuid>[^/]+)", self._add_user_client_roles),
            ("GET", realm + r"/users/(?P<uid>[^/]+)/groups", self._user_groups),
            ("PUT", realm + r"/users/(?P<uid>[^/]+)/groups/(?P<gid>[^/]+)", self._join_group),
            ("DELETE", realm + r"/users/(?P<uid>[^/]+)/groups/(?P<gid>[^/]+)", self._leave_group),
            ("GET", realm + r"/groups", self._list_groups),
            # roles
            ("POST", realm + r"/roles", self._create_role),
            ("GET", realm + r"/roles/(?P<role>[^/]+)", self._get_role),
            ("PUT", realm + r"/roles/(?P<role>[^/]+)", self._update_role),
            ("DELETE", realm + r"/roles/(?P<role>[^/]+)", self._delete_role),
            ("GET", realm + r"/roles/(?P<role>[^/]+)/composites", self._get_composites),
            ("POST", realm + r"/roles/(?P<role>[^/]+)/composites", self._add_composites),
            ("DELETE", realm + r"/roles/(?P<role>[^/]+)/composites", self._remove_composites),
            # identity providers
            ("POST", realm + r"/identity-provider/instances", self._create_idp),
            ("GET", realm + r"/identity-provider/instances/(?P<alias>[^/]+)", self._get_idp),
            ("PUT", realm + r"/identity-provider/instances/(?P<alias>[^/]+)", self._update_idp),
            ("DELETE", realm + r"/identity-provider/instances/(?P<alias>[^/]+)", self._delete_idp),
            ("POST", realm + r"/identity-provider/instances/(?P<alias>[^/]+)/mappers", self._create_idp_mapper),
            ("PUT", realm + r"/identity-provider/instances/(?P<alias>[^/]+)/mappers/(?P<mid>[^/]+)",
             self._update_idp_mapper),
            ("DELETE", realm + r"/identity-provider/instances/(?P<alias>[^/]+)/mappers/(?P<mid>[^/]+)",
             self._delete_idp_mapper),
            # authentication
            ("GET", realm + r"/authentication/flows", self._list_flows),
            ("GET", realm + r"/authentication/flows/browser/executions", self._list_executions),
            ("PUT", realm + r"/authentication/flows/browser/executions", self._update_execution),
            ("POST", realm + r"/authentication/executions/(?P<eid>[^/]+)/config", self._create_exec_config),
            ("GET", realm + r"/authentication/config/(?P<cid>[^/]+)", self._get_exec_config),
            ("PUT", realm + r"/authentication/config/(?P<cid>[^/]+)", self._update_exec_config),
        ]
        return [(method, re.compile(pattern), handler) for method, pattern, handler in routes]

    # ─────────────────────────────────────────────────────────────────────
    # Handlers
    # ─────────────────────────────────────────────────────────────────────
    def _state(self, realm: str) -> Dict[str, Any]:
        if realm not in self.realms:
            raise _HttpError(404, f"Realm {realm} not found")
        return self.realms[realm]

    def _token(self, realm, form, **_):
        form = form or {}
        if form.get("grant_type") == "password":
            ok = self.admin_credentials.get(form.get("username")) == form.get("password")
        elif form.get("grant_type") == "client_credentials":
            ok = self.service_accounts.get(form.get("client_id")) == form.get("client_secret")
        else:
            ok = False
        if not ok:
            raise _HttpError(401, "invalid_grant")
        return _StubResponse(200, {"access_token": make_access_token(), "expires_in": 300, "token_type": "Bearer"})

    def _openid_config(self, realm, **_):
        self._state(realm)
        issuer = f"{self.base_url}/realms/{realm}"
        doc = {"issuer": issuer, "authorization_endpoint": f"{issuer}/protocol/openid-connect/auth"}
        return _StubResponse(200, doc, text=json.dumps(doc, sort_keys=True))

    def _list_realms(self, **_):
        return _StubResponse(200, [copy.deepcopy(s["rep"]) for s in self.realms.values()])

    def _create_realm(self, body, **_):
        name = body["realm"]
        if name in self.realms:
            raise _HttpError(409, "Conflict detected. See logs for details")
        state = self.add_realm(name)
        state["rep"].update({k: v for k, v in body.items() if k != "identityProviderMappers"})
        return _StubResponse(201)

    def _get_realm(self, realm, **_):
        state = self._state(realm)
        rep = copy.deepcopy(state["rep"])
        rep["identityProviderMappers"] = [copy.deepcopy(m) for m in state["idp_mappers"].values()]
        return _StubResponse(200, rep)

    def _update_realm(self, realm, body, **_):
        state = self._state(realm)
        state["rep"].update({k: copy.deepcopy(v) for k, v in body.items() if k != "identityProviderMappers"})
        return _StubResponse(204)

    def _delete_realm(self, realm, **_):
        self._state(realm)
        del self.realms[realm]
        return _StubResponse(204)

    # clients
    def _client(self, state, uuid):
        if uuid not in state["clients"]:
            raise _HttpError(404, "Could not find client")
        return state["clients"][uuid]

    def _list_clients(self, realm, params, **_):
        state = self._state(realm)
        wanted = params.get("clientId")
        found = [c for c in state["clients"].values() if wanted is None or wanted in c["clientId"]]
        return _StubResponse(200, copy.deepcopy(found))

    def _create_client(self, realm, body, **_):
        state = self._state(realm)
        if any(c["clientId"] == body["clientId"] for c in state["clients"].values()):
            raise _HttpError(409, f"Client {body['clientId']} already exists")
        uuid = body.get("id") or self._next_id("client")
        rep = {k: copy.deepcopy(v) for k, v in body.items() if k != "protocolMappers"}
        rep["id"] = uuid
        rep.setdefault("secret", f"generated-{uuid}")
        state["clients"][uuid] = rep
        state["client_roles"][uuid] = {}
        state["mappers"][uuid] = {}
        for mapper in body.get("protocolMappers") or []:
            mid = self._next_id("mapper")
            state["mappers"][uuid][mid] = {**copy.deepcopy(mapper), "id": mid}
        return _StubResponse(201)

    def _update_client(self, realm, uuid, body, **_):
        state = self._state(realm)
        self._client(state, uuid).update(copy.deepcopy(body))
        return _StubResponse(204)

    def _delete_client(self, realm, uuid, **_):
        state = self._state(realm)
        self._client(state, uuid)
        del state["clients"][uuid]
        return _StubResponse(204)

    def _client_secret(self, realm, uuid, **_):
        client = self._client(self._state(realm), uuid)
        return _StubResponse(200, {"type": "secret", "value": client.get("secret", "")})

    def _get_client_role(self, realm, uuid, role, **_):
        state = self._state(realm)
        self._client(state, uuid)
        if role not in state["client_roles"][uuid]:
            raise _HttpError(404, "Could not find role")
        return _StubResponse(200, copy.deepcopy(state["client_roles"][uuid][role]))

    def _create_client_role(self, realm, uuid, body, **_):
        state = self._state(realm)
        self._client(state, uuid)
        if body["name"] in state["client_roles"][uuid]:
            raise _HttpError(409, "Role with name already exists")
        state["client_roles"][uuid][body["name"]] = {**body, "id": self._next_id("crole"), "clientRole": True}
        return _StubResponse(201)

    def _list_mappers(self, realm, uuid, **_):
        state = self._state(realm)
        self._client(state, uuid)
        return _StubResponse(200, copy.deepcopy(list(state["mappers"][uuid].values())))

    def _create_mapper(self, realm, uuid, body, **_):
        state = self._state(realm)
        self._client(state, uuid)
        if any(m["name"] == body["name"] for m in state["mappers"][uuid].values()):
            raise _HttpError(409, f"Protocol mapper exists with same name")
        mid = self._next_id("mapper")
        state["mappers"][uuid][mid] = {**copy.deepcopy(body), "id": mid}
        return _StubResponse(201)

    def _update_mapper(self, realm, uuid, mid, body, **_):
        state = self._state(realm)
        self._client(state, uuid)
        if mid not in state["mappers"][uuid]:
            raise _HttpError(404, "Model not found")
        state["mappers"][uuid][mid] = {**copy.deepcopy(body), "id": mid}
        return _StubResponse(204)

    def _delete_mapper(self, realm, uuid, mid, **_):
        state = self._state(realm)
        self._client(state, uuid)
        if mid not in state["mappers"][uuid]:
            raise _HttpError(404, "Model not found")
        del state["mappers"][uuid][mid]
        return _StubResponse(204)

    # users
    def _user(self, state, uid):
        if uid not in state["users"]:
            raise _HttpError(404, "User not found")
        return state["users"][uid]

    def _list_users(self, realm, params, **_):
        state = self._state(realm)
        wanted = params.get("username")
        found = [u for u in state["users"].values() if wanted is None or wanted in u["username"]]
        return _StubResponse(200, copy.deepcopy(found))

    def _create_user(self, realm, body, **_):
        state = self._state(realm)
        if any(u["username"] == body["username"] for u in state["users"].values()):
            raise _HttpError(409, "User exists with same username")
        uid = self._next_id("user")
        state["users"][uid] = {**copy.deepcopy(body), "id": uid}
        state["user_roles"][uid] = [f"default-roles-{realm}"]
        state["user_groups"][uid] = []
        return _StubResponse(201)

    def _update_user(self, realm, uid, body, **_):
        state = self._state(realm)
        self._user(state, uid).update(copy.deepcopy(body))
        return _StubResponse(204)

    def _delete_user(self, realm, uid, **_):
        state = self._state(realm)
        self._user(state, uid)
        del state["users"][uid]
        return _StubResponse(204)

    def _reset_password(self, realm, uid, body, **_):
        state = self._state(realm)
        self._user(state, uid)
        state["passwords"][uid] = body["value"]
        return _StubResponse(204)

    def _user_realm_roles(self, realm, uid, **_):
        state = self._state(realm)
        self._user(state, uid)
        return _StubResponse(200, [copy.deepcopy(state["roles"][name]) for name in state["user_roles"][uid]])

    def _add_user_realm_roles(self, realm, uid, body, **_):
        state = self._state(realm)
        self._user(state, uid)
        for role in body:
            if role["name"] not in state["roles"]:
                raise _HttpError(404, "Role not found")
            if role["name"] not in state["user_roles"][uid]:
                state["user_roles"][uid].append(role["name"])
        return _StubResponse(204)

    def _remove_user_realm_roles(self, realm, uid, body, **_):
        state = self._state(realm)
        self._user(state, uid)
        names = {role["name"] for role in body}
        state["user_roles"][uid] = [n for n in state["user_roles"][uid] if n not in names]
        return _StubResponse(204)

    def _user_client_roles(self, realm, uid, uuid, **_):
        state = self._state(realm)
        self._user(state, uid)
        names = state["user_client_roles"].get((uid, uuid), [])
        return _StubResponse(200, [copy.deepcopy(state["client_roles"][uuid][n]) for n in names])

    def _add_user_client_roles(self, realm, uid, uuid, body, **_):
        state = self._state(realm)
        self._user(state, uid)
        assigned = state["user_client_roles"].setdefault((uid, uuid), [])
        for role in body:
            if role["name"] not in assigned:
                assigned.append(role["name"])
        return _StubResponse(204)

    def _user_groups(self, realm, uid, **_):
        state = self._state(realm)
        self._user(state, uid)
        return _StubResponse(200, [copy.deepcopy(state["groups"][g]) for g in state["user_groups"][uid]])

    def _join_group(self, realm, uid, gid, **_):
        state = self._state(realm)
        self._user(state, uid)
        if gid not in state["groups"]:
            raise _HttpError(404, "Group not found")
        if gid not in state["user_groups"][uid]:
            state["user_groups"][uid].append(gid)
        return _StubResponse(204)

    def _leave_group(self, realm, uid, gid, **_):
        state = self._state(realm)
        self._user(state, uid)
        state["user_groups"][uid] = [g for g in state["user_groups"][uid] if g != gid]
        return _StubResponse(204)

    def _list_groups(self, realm, params, **_):
        state = self._state(realm)
        wanted = params.get("search", "")
        return _StubResponse(200, [copy.deepcopy(g) for g in state["groups"].values() if wanted in g["name"]])

    # roles
    def _role(self, state, role):
        if role not in state["roles"]:
            raise _HttpError(404, "Could not find role")
        return state["roles"][role]

    def _create_role(self, realm, body, **_):
        state = self._state(realm)
        if body["name"] in state["roles"]:
            raise _HttpError(409, f"Role with name {body['name']} already exists")
        state["roles"][body["name"]] = {**copy.deepcopy(body), "id": self._next_id("role")}
        return _StubResponse(201)

    def _get_role(self, realm, role, **_):
        return _StubResponse(200, copy.deepcopy(self._role(self._state(realm), role)))

    def _update_role(self, realm, role, body, **_):
        state = self._state(realm)
        self._role(state, role).update(copy.deepcopy(body))
        return _StubResponse(204)

    def _delete_role(self, realm, role, **_):
        state = self._state(realm)
        self._role(state, role)
        del state["roles"][role]
        return _StubResponse(204)

    def _get_composites(self, realm, role, **_):
        state = self._state(realm)
        self._role(state, role)
        names = state["composites"].get(role, [])
        return _StubResponse(200, [copy.deepcopy(state["roles"][n]) for n in names])

    def _add_composites(self, realm, role, body, **_):
        state = self._state(realm)
        self._role(state, role)
        members = state["composites"].setdefault(role, [])
        for member in body:
            self._role(state, member["name"])
            if member["name"] not in members:
                members.append(member["name"])
        return _StubResponse(204)

    def _remove_composites(self, realm, role, body, **_):
        state = self._state(realm)
        names = {member["name"] for member in body}
        state["composites"][role] = [n for n in state["composites"].get(role, []) if n not in names]
        return _StubResponse(204)

    # identity providers
    def _idp(self, state, alias):
        if alias not in state["idps"]:
            raise _HttpError(404, "Could not find identity provider")
        return state["idps"][alias]

    def _create_idp(self, realm, body, **_):
        state = self._state(realm)
        if body["alias"] in state["idps"]:
            raise _HttpError(409, "Identity Provider already exists")
        state["idps"][body["alias"]] = copy.deepcopy(body)
        return _StubResponse(201)

    def _get_idp(self, realm, alias, **_):
        return _StubResponse(200, copy.deepcopy(self._idp(self._state(realm), alias)))

    def _update_idp(self, realm, alias, body, **_):
        state = self._state(realm)
        self._idp(state, alias).update(copy.deepcopy(body))
        return _StubResponse(204)

    def _delete_idp(self, realm, alias, **_):
        state = self._state(realm)
        self._idp(state, alias)
        del state["idps"][alias]
        return _StubResponse(204)

    def _create_idp_mapper(self, realm, alias, body, **_):
        state = self._state(realm)
        self._idp(state, alias)
        if any(m["name"] == body["name"] for m in state["idp_mappers"].values()):
            raise _HttpError(409, "Identity provider mapper exists with same name")
        mid = self._next_id("idpmapper")
        state["idp_mappers"][mid] = {**copy.deepcopy(body), "id": mid, "identityProviderAlias": alias}
        return _StubResponse(201)

    def _update_idp_mapper(self, realm, alias, mid, body, **_):
        state = self._state(realm)
        if mid not in state["idp_mappers"] or state["idp_mappers"][mid]["identityProviderAlias"] != alias:
            raise _HttpError(404, "Mapper not found")
        state["idp_mappers"][mid] = {**copy.deepcopy(body), "id": mid, "identityProviderAlias": alias}
        return _StubResponse(204)

    def _delete_idp_mapper(self, realm, alias, mid, **_):
        state = self._state(realm)
        if mid not in state["idp_mappers"] or state["idp_mappers"][mid]["identityProviderAlias"] != alias:
            raise _HttpError(404, "Mapper not found")
        del state["idp_mappers"][mid]
        return _StubResponse(204)

    # authentication
    def _list_flows(self, realm, **_):
        return _StubResponse(200, copy.deepcopy(self._state(realm)["flows"]))

    def _list_executions(self, realm, **_):
        return _StubResponse(200, copy.deepcopy(self._state(realm)["executions"]))

    def _update_execution(self, realm, body, **_):
        state = self._state(realm)
        for execution in state["executions"]:
            if execution["id"] == body["id"]:
                execution["requirement"] = body["requirement"]
                return _StubResponse(202)
        raise _HttpError(404, "Execution not found")

    def _create_exec_config(self, realm, eid, body, **_):
        state = self._state(realm)
        execution = next((e for e in state["executions"] if e["id"] == eid), None)
        if execution is None:
            raise _HttpError(404, "Execution not found")
        cid = self._next_id("config")
        state["exec_configs"][cid] = {**copy.deepcopy(body), "id": cid}
        execution["authenticationConfig"] = cid
        return _StubResponse(201)

    def _get_exec_config(self, realm, cid, **_):
        state = self._state(realm)
        if cid not in state["exec_configs"]:
            raise _HttpError(404, "Config not found")
        return _StubResponse(200, copy.deepcopy(state["exec_configs"][cid]))

    def _update_exec_config(self, realm, cid, body, **_):
        state = self._state(realm)
        if cid not in state["exec_configs"]:
            raise _HttpError(404, "Config not found")
        state["exec_configs"][cid] = {**copy.deepcopy(body), "id": cid}
        return _StubResponse(204)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def fake_kc():
    """Modern-layout fake server with an existing ``demo`` realm."""
    fake = FakeKeycloak()
    fake.add_realm("demo")
    return fake


@pytest.fixture()
def adapter(fake_kc):
    """Adapter logged in against ``fake_kc``; the login call is dropped from ``calls``."""
    built = KeycloakAdapter.make(fake_kc.base_url, "admin", "admin", session=fake_kc)
    fake_kc.calls.clear()
    return built
