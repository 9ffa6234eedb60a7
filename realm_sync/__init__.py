"""Realm-sync: reconcile declarative Keycloak resources against a live server.

To use the Keycloak adapter:
    from realm_sync.core.keycloak import KeycloakAdapter

To run the control loops:
    from realm_sync.controller import RealmReconciler, Helper
"""
