"""Keycloak-specific exceptions for error handling."""


class KeycloakError(Exception):
    """Base exception for all Keycloak operations."""
    pass


class TransportError(KeycloakError):
    """Network or protocol failure while talking to Keycloak."""
    pass


class KeycloakAPIError(KeycloakError):
    """HTTP error from Keycloak Admin API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str, operation: str = ""):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        self.operation = operation
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}[{status_code}] {endpoint}: {message}")


class NotFoundError(KeycloakError):
    """Named entity does not exist on the remote side."""
    pass


class RemoteNotFoundError(KeycloakAPIError, NotFoundError):
    """Keycloak answered 404 to a call that expected the entity to exist."""
    pass


class ConflictError(KeycloakAPIError):
    """Keycloak rejected the call because of existing conflicting state (409)."""
    pass


class TokenExpiredError(KeycloakError):
    """Session token expired - the client must be rebuilt, not retried."""
    pass


class ValidationError(KeycloakError):
    """Malformed input (bad token data, missing secret key, ...)."""
    pass


class OperationCancelledError(KeycloakError):
    """The reconcile context was cancelled or ran past its deadline."""
    pass


class RealmNotFoundError(NotFoundError):
    """Realm does not exist."""
    pass


class ClientNotFoundError(NotFoundError):
    """Client does not exist in realm."""
    pass


class UserNotFoundError(NotFoundError):
    """User lookup failed - username does not exist."""
    pass


class RoleNotFoundError(NotFoundError):
    """Role does not exist in realm."""
    pass


class GroupNotFoundError(NotFoundError):
    """Group does not exist in realm."""
    pass


class ExecutionNotFoundError(NotFoundError):
    """Authentication execution or flow is missing."""
    pass


class IdentityProviderNotFoundError(NotFoundError):
    """Identity provider alias does not exist in realm."""
    pass
