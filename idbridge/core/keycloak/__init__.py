"""Keycloak identity bridge library.

This package provides a modular, testable interface to the Keycloak operations
needed by long-running control and test processes.

Architecture:
- endpoints.py: Admin / non-admin base URL discovery (override or OIDC secret)
- secrets.py: Admin password and cached admin token in durable secrets
- tokens.py: Password-grant token exchange and admin token rotation
- client.py: HTTP transport and authenticated request layer
- directory.py: User, group and role CRUD plus role bindings
- retry.py: Fixed-interval retry bounded by a deadline
- models.py: Directory representations
- exceptions.py: Typed exceptions for error handling

Usage:
    from idbridge.core.bridge import IdentityBridge

    bridge = IdentityBridge.from_settings(load_settings())
    bridge.directory.add_user("alice", "Alice", "Liddell", "alice@example.com", "pwd")
    username, email = bridge.directory.fetch_user_details(user_id)
"""
from .client import HttpTransport, IdentityClient, REQUEST_TIMEOUT
from .directory import DirectoryOperations
from .endpoints import EndpointResolver
from .exceptions import (
    KeycloakError,
    ConfigError,
    EndpointLookupError,
    AuthError,
    StorageError,
    TransportError,
    KeycloakAPIError,
    DirectoryError,
    UserNotFoundError,
    IncompleteUserError,
    DeadlineExceededError,
)
from .models import (
    User,
    UserCredential,
    Group,
    GroupMembership,
    Role,
    RoleComposites,
    MASTER_REALM,
    APPLICATION_OWNER,
    APPLICATION_USER,
    INFRASTRUCTURE_OWNER,
    DEFAULT_ROLES,
)
from .retry import retry_until_deadline
from .secrets import SecretStore, KubernetesSecretStore, SecretBridge
from .tokens import TokenBroker, context_with_token

__all__ = [
    # Client
    "HttpTransport",
    "IdentityClient",
    "REQUEST_TIMEOUT",

    # Exceptions
    "KeycloakError",
    "ConfigError",
    "EndpointLookupError",
    "AuthError",
    "StorageError",
    "TransportError",
    "KeycloakAPIError",
    "DirectoryError",
    "UserNotFoundError",
    "IncompleteUserError",
    "DeadlineExceededError",

    # Components
    "EndpointResolver",
    "SecretStore",
    "KubernetesSecretStore",
    "SecretBridge",
    "TokenBroker",
    "DirectoryOperations",
    "context_with_token",
    "retry_until_deadline",

    # Models
    "User",
    "UserCredential",
    "Group",
    "GroupMembership",
    "Role",
    "RoleComposites",
    "MASTER_REALM",
    "APPLICATION_OWNER",
    "APPLICATION_USER",
    "INFRASTRUCTURE_OWNER",
    "DEFAULT_ROLES",
]
