"""Keycloak-specific exceptions for error handling."""


class KeycloakError(Exception):
    """Base exception for all identity bridge operations."""
    pass


class ConfigError(KeycloakError):
    """An endpoint override or issuer URL is malformed."""
    pass


class EndpointLookupError(KeycloakError, LookupError):
    """Endpoint discovery failed - OIDC secret or issuer field is missing."""
    pass


class AuthError(KeycloakError):
    """Token exchange failed (transport, non-2xx status or undecodable body)."""
    pass


class StorageError(KeycloakError):
    """Secret read/write failed, or a persisted value came back empty."""
    pass


class TransportError(KeycloakError):
    """HTTP request never produced a response.

    Attributes:
        method: HTTP verb
        endpoint: Request URL
    """

    def __init__(self, method: str, endpoint: str, message: str):
        self.method = method
        self.endpoint = endpoint
        self.message = message
        super().__init__(f"{method} {endpoint}: {message}")


class KeycloakAPIError(KeycloakError):
    """The IdP answered with a non-2xx status.

    Raised by the transport for every IdP endpoint, token and admin alike.
    Requests sent with an empty id (see name resolution) end up here as 404.

    Attributes:
        status_code: Response status
        message: Response body text
        endpoint: Full request URL
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class DirectoryError(KeycloakError):
    """Directory listing or decoding failed, or polling ran out of time."""
    pass


class UserNotFoundError(DirectoryError):
    """User lookup failed - no user carries the requested id."""
    pass


class IncompleteUserError(DirectoryError):
    """User exists but the IdP returned it without username or email."""
    pass


class DeadlineExceededError(KeycloakError):
    """Retried operation did not succeed before its deadline.

    Attributes:
        last_error: Exception raised by the final attempt
        attempts: Number of attempts made
    """

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")
