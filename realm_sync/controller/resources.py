"""Declarative resources and the store the control loops read them from."""
from __future__ import annotations
import copy
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

STATUS_OK = "OK"

KIND_REALM = "KeycloakRealm"
KIND_CLIENT = "KeycloakClient"
KIND_REALM_USER = "KeycloakRealmUser"
KIND_REALM_ROLE = "KeycloakRealmRole"


@dataclass
class Status:
    value: str = ""
    message: str = ""
    failure_count: int = 0


@dataclass
class Resource:
    """One declarative resource as seen by a control loop."""
    kind: str
    name: str
    spec: Any
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    finalizers: List[str] = field(default_factory=list)
    keep_resource: bool = False
    deletion_requested: bool = False
    status: Status = field(default_factory=Status)

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def add_finalizer(self, finalizer: str) -> None:
        if finalizer not in self.finalizers:
            self.finalizers.append(finalizer)

    def remove_finalizer(self, finalizer: str) -> None:
        self.finalizers = [f for f in self.finalizers if f != finalizer]


class InMemoryResourceStore:
    """Thread-safe resource store keyed by (kind, name).

    Returned resources are copies; callers persist changes through ``update``.
    """

    def __init__(self, resources: Optional[List[Resource]] = None):
        self._lock = threading.Lock()
        self._items: Dict[Tuple[str, str], Resource] = {}
        for resource in resources or []:
            self._items[(resource.kind, resource.name)] = copy.deepcopy(resource)

    def get(self, kind: str, name: str) -> Optional[Resource]:
        with self._lock:
            resource = self._items.get((kind, name))
            return copy.deepcopy(resource) if resource is not None else None

    def list(self, kind: str) -> List[Resource]:
        with self._lock:
            return [copy.deepcopy(r) for (k, _), r in sorted(self._items.items()) if k == kind]

    def update(self, resource: Resource) -> None:
        with self._lock:
            self._items[(resource.kind, resource.name)] = copy.deepcopy(resource)

    def update_status(self, kind: str, name: str, status: Status) -> None:
        with self._lock:
            resource = self._items.get((kind, name))
            if resource is not None:
                resource.status = copy.deepcopy(status)

    def remove(self, kind: str, name: str) -> None:
        with self._lock:
            self._items.pop((kind, name), None)
