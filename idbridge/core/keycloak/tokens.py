"""Token exchange and admin token lifecycle.

Two tiers of token exist:
- ephemeral tokens from ``exchange_token`` / ``admin_token``, never cached
- the durable admin token from ``refreshed_admin_token``, persisted in the
  admin token secret
"""
from __future__ import annotations
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Dict

from idbridge.config.settings import BridgeSettings
from .client import HttpTransport
from .endpoints import EndpointResolver
from .exceptions import AuthError, KeycloakAPIError, TransportError
from .secrets import SecretBridge

logger = logging.getLogger(__name__)

# Outgoing auth metadata
AUTH_HEADER = "authorization"
AUTH_TOKEN_TYPE = "bearer"


def context_with_token(token: str) -> Dict[str, str]:
    """Wrap a token into outgoing request metadata."""
    return {AUTH_HEADER: f"{AUTH_TOKEN_TYPE} {token}"}


@dataclass(frozen=True)
class TokenBroker:
    """Issues bearer tokens for a fixed administrative identity.

    The broker is immutable. Reloading the password from the admin credential
    secret yields a new broker through ``with_password_from_secret``.
    """
    resolver: EndpointResolver
    secrets: SecretBridge
    settings: BridgeSettings
    admin_password: str = field(default="", repr=False)
    transport: HttpTransport = field(default_factory=HttpTransport, compare=False)

    @property
    def admin_username(self) -> str:
        return self.settings.admin_username

    def exchange_token(self, username: str, password: str) -> str:
        """Exchange a username/password pair for a bearer token.

        Args:
            username: Account username
            password: Account password

        Returns:
            Access token

        Raises:
            AuthError: On transport failure, non-2xx status or bad response
        """
        form = {
            "client_id": self.settings.client_id,
            "username": username,
            "password": password,
            "grant_type": "password",
            "token-duration": self.settings.token_duration,
        }
        url = f"{self.resolver.resolve(admin=False)}/protocol/openid-connect/token"
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            raw = self.transport.request("POST", url, headers, form)
        except (TransportError, KeycloakAPIError) as exc:
            logger.error("exchange_token: %s", exc)
            raise AuthError(f"Token request for '{username}' failed: {exc}") from exc

        try:
            token = json.loads(raw).get("access_token")
        except (ValueError, AttributeError) as exc:
            logger.error("exchange_token: undecodable token response: %s", exc)
            raise AuthError(f"Undecodable token response for '{username}'") from exc
        if not token or not isinstance(token, str):
            raise AuthError(f"Token response for '{username}' has no access_token")
        return token

    def admin_token(self) -> str:
        """Obtain a token for the administrative identity."""
        return self.exchange_token(self.admin_username, self.admin_password)

    def refreshed_admin_token(self) -> str:
        """Issue an admin token, persist it and return the persisted value.

        Raises:
            AuthError: If the token exchange fails
            StorageError: If the write fails or the read-back is empty
        """
        return self.secrets.rotate_admin_token(self.admin_token)

    def admin_context(self) -> Dict[str, str]:
        return context_with_token(self.admin_token())

    def refreshed_admin_context(self) -> Dict[str, str]:
        return context_with_token(self.refreshed_admin_token())

    def with_password_from_secret(self) -> "TokenBroker":
        """Return a new broker using the password stored in the admin secret.

        Raises:
            StorageError: If the secret is unreadable or empty
        """
        return dataclasses.replace(self, admin_password=self.secrets.admin_password())
