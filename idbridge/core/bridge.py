"""Wires the identity bridge components together from settings."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from idbridge.config.settings import BridgeSettings
from idbridge.core.keycloak import (
    DirectoryOperations,
    EndpointResolver,
    HttpTransport,
    IdentityClient,
    KubernetesSecretStore,
    SecretBridge,
    SecretStore,
    TokenBroker,
)


@dataclass(frozen=True)
class IdentityBridge:
    """Fully assembled bridge: resolver, secrets, broker, client, directory."""
    resolver: EndpointResolver
    secrets: SecretBridge
    broker: TokenBroker
    client: IdentityClient
    directory: DirectoryOperations

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        store: Optional[SecretStore] = None,
        transport: Optional[HttpTransport] = None,
        load_admin_password: bool = True,
    ) -> "IdentityBridge":
        """Build a bridge.

        Without a configured admin password, the password is read once from the
        admin credential secret, unless load_admin_password is False. A bridge
        built that way can still exchange user credentials; admin calls fail
        with AuthError.

        Args:
            settings: Bridge settings
            store: Secret store (defaults to the Kubernetes API)
            transport: HTTP transport (defaults to a requests session)
            load_admin_password: Read a missing admin password from the cluster
        """
        store = store or KubernetesSecretStore()
        transport = transport or HttpTransport(timeout=settings.request_timeout)
        resolver = EndpointResolver(store, settings)
        secrets = SecretBridge(store, settings)
        broker = TokenBroker(
            resolver=resolver,
            secrets=secrets,
            settings=settings,
            admin_password=settings.admin_password,
            transport=transport,
        )
        if load_admin_password and not broker.admin_password:
            broker = broker.with_password_from_secret()
        return cls.assemble(resolver, secrets, broker, settings)

    @classmethod
    def assemble(
        cls,
        resolver: EndpointResolver,
        secrets: SecretBridge,
        broker: TokenBroker,
        settings: BridgeSettings,
    ) -> "IdentityBridge":
        client = IdentityClient(broker, resolver, broker.transport)
        directory = DirectoryOperations(
            client,
            broker,
            retry_timeout=settings.retry_timeout,
            retry_interval=settings.retry_interval,
        )
        return cls(resolver=resolver, secrets=secrets, broker=broker, client=client, directory=directory)

