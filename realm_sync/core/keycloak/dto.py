"""Typed representations exchanged between specs, services and Keycloak."""
from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import jwt

from .exceptions import ValidationError

OPENID_CONNECT = "openid-connect"


@dataclass(frozen=True)
class Token:
    """Immutable session token; replaced wholesale, never refreshed in place."""
    access_token: str
    expires_at: int
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Token":
        """Build a token from a token-endpoint JSON payload.

        Raises:
            ValidationError: If the access token is missing or not a JWT with ``exp``
        """
        if not isinstance(payload, dict):
            raise ValidationError("token data must be a JSON object")
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValidationError("token data has no access_token")
        return cls(access_token=access_token, expires_at=decode_token_expiry(access_token), raw=dict(payload))

    @property
    def expired(self) -> bool:
        return self.expires_at < int(time.time())


def decode_token_expiry(access_token: str) -> int:
    """Read the ``exp`` claim from the middle JWT segment without verifying it."""
    if len(access_token.split(".")) < 3:
        raise ValidationError("wrong JWT token structure")
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise ValidationError(f"unable to decode JWT payload: {exc}") from exc
    exp = claims.get("exp")
    if not isinstance(exp, int):
        raise ValidationError("JWT payload has no integer exp claim")
    return exp


@dataclass
class ProtocolMapper:
    name: str
    protocol_mapper: str
    protocol: str = OPENID_CONNECT
    config: Dict[str, str] = field(default_factory=dict)
    id: Optional[str] = None

    def to_representation(self) -> Dict[str, Any]:
        rep: Dict[str, Any] = {
            "name": self.name,
            "protocol": self.protocol,
            "protocolMapper": self.protocol_mapper,
            "config": dict(self.config or {}),
        }
        if self.id:
            rep["id"] = self.id
        return rep

    @classmethod
    def from_representation(cls, rep: Dict[str, Any]) -> "ProtocolMapper":
        return cls(
            name=rep.get("name", ""),
            protocol_mapper=rep.get("protocolMapper", ""),
            protocol=rep.get("protocol") or OPENID_CONNECT,
            config=dict(rep.get("config") or {}),
            id=rep.get("id"),
        )


@dataclass
class IdentityProviderMapper:
    name: str
    identity_provider_alias: str = ""
    identity_provider_mapper: str = ""
    config: Dict[str, str] = field(default_factory=dict)
    id: Optional[str] = None

    def to_representation(self) -> Dict[str, Any]:
        rep: Dict[str, Any] = {
            "name": self.name,
            "identityProviderAlias": self.identity_provider_alias,
            "identityProviderMapper": self.identity_provider_mapper,
            "config": dict(self.config or {}),
        }
        if self.id:
            rep["id"] = self.id
        return rep


# Fields a decoded IdP mapper must carry to be matched by name.
IDP_MAPPER_REQUIRED_FIELDS = ("name",)


def decode_identity_provider_mapper(raw: Any) -> Tuple[IdentityProviderMapper, bool]:
    """Tolerantly decode one embedded IdP mapper from a schemaless realm payload.

    Fields with an unexpected type are left at their defaults instead of failing
    the whole mapper. The second value is True only when every field in
    ``IDP_MAPPER_REQUIRED_FIELDS`` was recognized.
    """
    mapper = IdentityProviderMapper(name="")
    if not isinstance(raw, dict):
        return mapper, False

    recognized = set()
    for attr, key in (
        ("id", "id"),
        ("name", "name"),
        ("identity_provider_alias", "identityProviderAlias"),
        ("identity_provider_mapper", "identityProviderMapper"),
    ):
        value = raw.get(key)
        if isinstance(value, str) and value:
            setattr(mapper, attr, value)
            recognized.add(attr)

    config = raw.get("config")
    if isinstance(config, dict):
        mapper.config = {k: v for k, v in config.items() if isinstance(v, str)}

    return mapper, all(name in recognized for name in IDP_MAPPER_REQUIRED_FIELDS)


@dataclass
class PasswordPolicy:
    type: str
    value: str


@dataclass
class RealmThemes:
    login_theme: Optional[str] = None
    account_theme: Optional[str] = None
    admin_console_theme: Optional[str] = None
    email_theme: Optional[str] = None
    internationalization_enabled: Optional[bool] = None


@dataclass
class RealmSettings:
    themes: Optional[RealmThemes] = None
    browser_security_headers: Optional[Dict[str, str]] = None
    password_policies: List[PasswordPolicy] = field(default_factory=list)
    frontend_url: str = ""

    def is_empty(self) -> bool:
        return (
            self.themes is None
            and not self.browser_security_headers
            and not self.password_policies
            and not self.frontend_url
        )


@dataclass
class RealmUser:
    username: str
    realm_roles: List[str] = field(default_factory=list)


@dataclass
class RealmSpec:
    name: str
    sso_realm_enabled: bool = False
    sso_realm_name: str = ""
    sso_auto_redirect_enabled: bool = True
    disable_central_idp_mappers: bool = False
    identity_provider_mappers: List[IdentityProviderMapper] = field(default_factory=list)
    users: List[RealmUser] = field(default_factory=list)
    settings: RealmSettings = field(default_factory=RealmSettings)
    browser_flow: str = ""
    id: Optional[str] = None


@dataclass
class ClientSpec:
    realm: str
    client_id: str
    secret: str = ""
    public: bool = False
    direct_access: bool = False
    service_account_enabled: bool = False
    front_channel_logout: bool = False
    web_url: str = ""
    protocol: str = OPENID_CONNECT
    attributes: Dict[str, str] = field(default_factory=dict)
    advanced_protocol_mappers: bool = False
    protocol_mappers: Optional[List[ProtocolMapper]] = None
    client_roles: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class SecretRef:
    name: str = ""
    key: str = ""


@dataclass
class UserSpec:
    realm: str
    username: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    groups: List[str] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)
    required_actions: List[str] = field(default_factory=list)
    enabled: bool = True
    email_verified: bool = False
    password: str = ""
    password_secret: SecretRef = field(default_factory=SecretRef)


@dataclass
class RoleSpec:
    realm: str
    name: str
    description: str = ""
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    composite: bool = False
    composites: List[str] = field(default_factory=list)
