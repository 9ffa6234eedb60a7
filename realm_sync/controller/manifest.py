"""Load declarative resources from YAML manifests.

Each YAML document describes one resource::

    kind: KeycloakRealm
    name: demo
    keep_resource: false
    labels: {}
    spec:
      name: demo
      users:
        - username: alice
          realm_roles: [developer]

Spec keys are the snake_case field names of the matching dataclass.
"""
from __future__ import annotations
import dataclasses
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Type, TypeVar

import yaml

from ..core.keycloak.dto import (
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
    UserSpec,
)
from ..core.keycloak.exceptions import ValidationError
from .resources import KIND_CLIENT, KIND_REALM, KIND_REALM_ROLE, KIND_REALM_USER, Resource

T = TypeVar("T")


def _build(cls: Type[T], data: Any, nested: Dict[str, Callable[[Any], Any]] | None = None) -> T:
    if not isinstance(data, dict):
        raise ValidationError(f"{cls.__name__}: expected a mapping, got {type(data).__name__}")
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValidationError(f"{cls.__name__}: unknown fields {unknown}")
    values = dict(data)
    for key, convert in (nested or {}).items():
        if values.get(key) is not None:
            values[key] = convert(values[key])
    try:
        return cls(**values)
    except TypeError as exc:
        raise ValidationError(f"{cls.__name__}: {exc}") from exc


def _list_of(cls: Type[T], nested: Dict[str, Callable[[Any], Any]] | None = None) -> Callable[[Any], List[T]]:
    def convert(items: Any) -> List[T]:
        if not isinstance(items, list):
            raise ValidationError(f"{cls.__name__}: expected a list")
        return [_build(cls, item, nested) for item in items]
    return convert


def parse_realm(data: Any) -> RealmSpec:
    settings_nested = {
        "themes": lambda d: _build(RealmThemes, d),
        "password_policies": _list_of(PasswordPolicy),
    }
    return _build(RealmSpec, data, {
        "identity_provider_mappers": _list_of(IdentityProviderMapper),
        "users": _list_of(RealmUser),
        "settings": lambda d: _build(RealmSettings, d, settings_nested),
    })


def parse_client(data: Any) -> ClientSpec:
    return _build(ClientSpec, data, {"protocol_mappers": _list_of(ProtocolMapper)})


def parse_user(data: Any) -> UserSpec:
    return _build(UserSpec, data, {"password_secret": lambda d: _build(SecretRef, d)})


def parse_role(data: Any) -> RoleSpec:
    return _build(RoleSpec, data)


SPEC_PARSERS: Dict[str, Callable[[Any], Any]] = {
    KIND_REALM: parse_realm,
    KIND_CLIENT: parse_client,
    KIND_REALM_USER: parse_user,
    KIND_REALM_ROLE: parse_role,
}


def resource_from_document(doc: Any) -> Resource:
    if not isinstance(doc, dict):
        raise ValidationError("manifest document must be a mapping")
    kind = doc.get("kind")
    parser = SPEC_PARSERS.get(kind)
    if parser is None:
        raise ValidationError(f"unsupported kind {kind!r}")
    name = doc.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError(f"{kind}: missing name")
    return Resource(
        kind=kind,
        name=name,
        spec=parser(doc.get("spec") or {}),
        labels=dict(doc.get("labels") or {}),
        annotations=dict(doc.get("annotations") or {}),
        keep_resource=bool(doc.get("keep_resource", False)),
    )


def load_documents(documents: Iterable[Any]) -> List[Resource]:
    return [resource_from_document(doc) for doc in documents if doc]


def load_manifest(path: str | Path) -> List[Resource]:
    """Parse every YAML document of ``path`` into a resource.

    Raises:
        ValidationError: On an unknown kind, field or malformed document
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            return load_documents(list(yaml.safe_load_all(f)))
        except yaml.YAMLError as exc:
            raise ValidationError(f"invalid manifest {path}: {exc}") from exc
