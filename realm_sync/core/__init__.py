"""Core Module

Framework-independent logic for talking to Keycloak.

Module Structure:
    - keycloak/  : Keycloak Admin API client, services and adapter facade
    - context.py : Cancellation context carried through one reconcile pass
"""
