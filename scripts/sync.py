"""Reconcile a YAML manifest of Keycloak resources once.

This module serves as a CLI wrapper around the realm_sync control loops.

Usage:
    python scripts/sync.py manifest.yaml
    python scripts/sync.py manifest.yaml --delete
    python scripts/sync.py manifest.yaml --export-token .runtime/token.json
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from realm_sync.config import load_settings
from realm_sync.controller import (
    ClientReconciler,
    FileSecretStore,
    Helper,
    InMemoryResourceStore,
    RealmReconciler,
    RealmRoleReconciler,
    RealmUserReconciler,
    create_default_chain,
)
from realm_sync.controller.manifest import load_manifest
from realm_sync.controller.resources import KIND_CLIENT, KIND_REALM, KIND_REALM_ROLE, KIND_REALM_USER
from realm_sync.core.context import Context
from realm_sync.core.keycloak.exceptions import KeycloakError

# Dependents come after the realm they live in and leave before it.
KIND_ORDER = (KIND_REALM, KIND_REALM_ROLE, KIND_CLIENT, KIND_REALM_USER)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile Keycloak resources from a YAML manifest")
    parser.add_argument("manifest", help="YAML file with one resource per document")
    parser.add_argument("--delete", action="store_true", help="Delete the remote counterparts instead")
    parser.add_argument("--export-token", metavar="PATH", help="Write the session token JSON to PATH")
    args = parser.parse_args(argv)

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log = logging.getLogger("realm_sync")

    try:
        resources = load_manifest(args.manifest)
    except (OSError, KeycloakError) as e:
        print(f"[sync] Error: {e}", file=sys.stderr)
        return 1

    store = InMemoryResourceStore()
    secret_store = FileSecretStore(settings.secrets_dir, logger=log)
    helper = Helper(settings, store, logger=log)
    reconcilers = {
        KIND_REALM: RealmReconciler(helper, create_default_chain(store, secret_store, log), log),
        KIND_REALM_ROLE: RealmRoleReconciler(helper, log),
        KIND_CLIENT: ClientReconciler(helper, secret_store, log),
        KIND_REALM_USER: RealmUserReconciler(helper, secret_store, log),
    }

    for resource in resources:
        if args.delete:
            resource.add_finalizer(reconcilers[resource.kind].finalizer)
            resource.deletion_requested = True
        store.update(resource)

    order = list(reversed(KIND_ORDER)) if args.delete else list(KIND_ORDER)
    failed = 0
    for kind in order:
        # The realm chain may declare companion clients; list them only once realms ran.
        for resource in store.list(kind):
            ctx = Context.with_timeout(settings.reconcile_timeout)
            result = reconcilers[kind].reconcile(ctx, resource.name)
            if result.error is not None:
                failed += 1
                print(f"[sync] {kind} {resource.name}: {result.error}", file=sys.stderr)

    if args.export_token and not failed:
        Path(args.export_token).write_bytes(helper.create_adapter().export_token())
        log.info("Session token written to %s", args.export_token)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
