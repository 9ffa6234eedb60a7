"""Control loops, realm assembly chain and deletion life cycle."""
from .helper import Helper
from .realm_chain import ChainStepError, RealmHandler, create_default_chain, run_chain
from .reconcilers import (
    BaseReconciler,
    ClientReconciler,
    RealmReconciler,
    RealmRoleReconciler,
    RealmUserReconciler,
    ReconcileResult,
)
from .resources import InMemoryResourceStore, Resource, Status
from .secrets import FileSecretStore, InMemorySecretStore, resolve_user_password
from .terminator import RealmTerminator, Terminator

__all__ = [
    "Helper",
    "ChainStepError",
    "RealmHandler",
    "create_default_chain",
    "run_chain",
    "BaseReconciler",
    "ClientReconciler",
    "RealmReconciler",
    "RealmRoleReconciler",
    "RealmUserReconciler",
    "ReconcileResult",
    "InMemoryResourceStore",
    "Resource",
    "Status",
    "FileSecretStore",
    "InMemorySecretStore",
    "resolve_user_password",
    "RealmTerminator",
    "Terminator",
]
