"""Keycloak endpoint discovery.

Two sources are supported:
- an explicit UI URL override, used when the caller runs outside the cluster
  network and cannot reach the in-cluster service name
- the OIDC secret, whose issuer holds a bare service name that is expanded
  into a cluster-local DNS name for the secret's namespace
"""
from __future__ import annotations
import logging
from urllib.parse import urlsplit, urlunsplit

from idbridge.config.settings import BridgeSettings
from .exceptions import ConfigError, EndpointLookupError, StorageError
from .secrets import SecretStore

logger = logging.getLogger(__name__)


class EndpointResolver:
    """Computes admin and non-admin Keycloak base URLs."""

    def __init__(self, store: SecretStore, settings: BridgeSettings):
        self.store = store
        self.settings = settings

    def resolve(self, admin: bool) -> str:
        """Return the admin or non-admin realm base URL.

        Args:
            admin: True for the admin REST base, False for the OIDC base

        Returns:
            Base URL without trailing slash

        Raises:
            ConfigError: If the override or issuer URL is malformed
            EndpointLookupError: If the OIDC secret or issuer field is missing
        """
        override = self.settings.ui_url_override.strip()
        if override:
            return self._from_override(override, admin)
        return self._from_secret(admin)

    def _from_override(self, override: str, admin: bool) -> str:
        parsed = urlsplit(override)
        if not parsed.scheme or not parsed.netloc:
            raise ConfigError(f"Invalid endpoint override '{override}' – expected absolute URI")
        base = override.rstrip("/")
        realm = self.settings.realm
        if admin:
            return f"{base}/auth/admin/realms/{realm}"
        return f"{base}/auth/realms/{realm}"

    def _from_secret(self, admin: bool) -> str:
        name = self.settings.oidc_secret_name
        namespace = self.settings.backup_namespace
        try:
            data = self.store.get_secret(name, namespace)
        except StorageError as exc:
            logger.error("resolve: unable to read OIDC secret %s/%s: %s", namespace, name, exc)
            raise EndpointLookupError(f"OIDC secret {namespace}/{name} not available") from exc

        issuer = (data.get(self.settings.oidc_issuer_field) or "").strip()
        if not issuer:
            raise EndpointLookupError(
                f"OIDC secret {namespace}/{name} has no {self.settings.oidc_issuer_field} field"
            )

        url = self.expand_service_host(issuer, namespace)
        if admin:
            url = self.splice_admin_segment(url)
        return url

    def expand_service_host(self, issuer: str, namespace: str) -> str:
        """Rewrite the issuer host into <host>.<namespace>.<cluster suffix>."""
        parsed = urlsplit(issuer)
        if not parsed.scheme or not parsed.hostname:
            raise ConfigError(f"Invalid issuer URL '{issuer}' – expected absolute URI")
        # Host text is kept as written, along with any userinfo and port
        userinfo, at, hostport = parsed.netloc.rpartition("@")
        host, colon, port = hostport.partition(":")
        netloc = f"{userinfo}{at}{host}.{namespace}.{self.settings.cluster_dns_suffix}{colon}{port}"
        return urlunsplit((parsed.scheme, netloc, parsed.path.rstrip("/"), parsed.query, parsed.fragment))

    @staticmethod
    def splice_admin_segment(url: str) -> str:
        """Insert an 'admin' path segment right after the first 'auth' segment."""
        parsed = urlsplit(url)
        segments = parsed.path.split("/")
        if "auth" not in segments:
            raise ConfigError(f"Issuer URL '{url}' has no 'auth' path segment")
        index = segments.index("auth")
        segments.insert(index + 1, "admin")
        return urlunsplit((parsed.scheme, parsed.netloc, "/".join(segments), parsed.query, parsed.fragment))
