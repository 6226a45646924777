"""Durable secret storage for the admin credential and cached admin token.

Two secret objects are involved:
- the admin credential secret, holding the administrative identity's password
- the admin token secret, holding the long-lived organization token

Secrets are read and written through a ``SecretStore``; the Kubernetes-backed
store is the production implementation.
"""
from __future__ import annotations
import base64
import binascii
import logging
import threading
from typing import Callable, Dict, Optional

from kubernetes import client as k8s_client, config as k8s_config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from idbridge.config.settings import BridgeSettings
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class SecretStore:
    """Minimal view of a namespaced secret store."""

    def get_secret(self, name: str, namespace: str) -> Dict[str, str]:
        """Return the decoded key/value pairs of a secret.

        Raises:
            StorageError: If the secret cannot be read
        """
        raise NotImplementedError

    def update_secret(self, name: str, namespace: str, data: Dict[str, str]) -> None:
        """Merge data into an existing secret.

        Raises:
            StorageError: If the secret cannot be read or written
        """
        raise NotImplementedError


class KubernetesSecretStore(SecretStore):
    """SecretStore backed by the Kubernetes core API.

    Cluster access is configured on first use: in-cluster service account
    first, local kubeconfig second. Every failure surfaces as StorageError.
    """

    def __init__(self, api: Optional[k8s_client.CoreV1Api] = None):
        self._api = api

    @property
    def api(self) -> k8s_client.CoreV1Api:
        if self._api is None:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                try:
                    k8s_config.load_kube_config()
                except (k8s_config.ConfigException, OSError) as exc:
                    logger.error("No in-cluster config and no usable kubeconfig: %s", exc)
                    raise StorageError(f"Kubernetes API not configured: {exc}") from exc
            self._api = k8s_client.CoreV1Api()
        return self._api

    def _read(self, name: str, namespace: str):
        try:
            return self.api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as exc:
            raise StorageError(f"Failed to read secret {namespace}/{name}: [{exc.status}] {exc.reason}") from exc
        except HTTPError as exc:
            raise StorageError(f"Failed to read secret {namespace}/{name}: {exc}") from exc

    def get_secret(self, name: str, namespace: str) -> Dict[str, str]:
        secret = self._read(name, namespace)
        encoded = secret.data or {}
        try:
            return {k: base64.b64decode(v).decode() for k, v in encoded.items()}
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise StorageError(f"Secret {namespace}/{name} holds undecodable data: {exc}") from exc

    def update_secret(self, name: str, namespace: str, data: Dict[str, str]) -> None:
        secret = self._read(name, namespace)
        merged = dict(secret.data or {})
        merged.update({k: base64.b64encode(v.encode()).decode() for k, v in data.items()})
        secret.data = merged
        try:
            self.api.replace_namespaced_secret(name=name, namespace=namespace, body=secret)
        except ApiException as exc:
            raise StorageError(f"Failed to update secret {namespace}/{name}: [{exc.status}] {exc.reason}") from exc
        except HTTPError as exc:
            raise StorageError(f"Failed to update secret {namespace}/{name}: {exc}") from exc


class SecretBridge:
    """Reads and writes the admin credential and admin token secrets.

    Token rotation holds an in-process lock across issue, write and read-back.
    The store offers no compare-and-swap, so refreshers running in other
    processes can still overwrite each other.
    """

    def __init__(self, store: SecretStore, settings: BridgeSettings):
        """Initialize secret bridge.

        Args:
            store: Backing secret store
            settings: Bridge settings (secret names, namespaces and fields)
        """
        self.store = store
        self.settings = settings
        self._rotation_lock = threading.Lock()

    def admin_password(self) -> str:
        """Return the admin password held in the admin credential secret.

        Raises:
            StorageError: If the secret is unreadable or the field is empty
        """
        name = self.settings.admin_secret_name
        namespace = self.settings.backup_namespace
        data = self.store.get_secret(name, namespace)
        password = data.get(self.settings.admin_password_field, "")
        if not password:
            logger.error("admin_password: secret %s/%s has no %s", namespace, name, self.settings.admin_password_field)
            raise StorageError(f"{name} secret is empty")
        return password

    def cached_admin_token(self) -> str:
        """Return the admin token currently persisted in the admin token secret.

        Raises:
            StorageError: If the secret is unreadable or the token field is empty
        """
        data = self.store.get_secret(
            self.settings.admin_token_secret_name,
            self.settings.admin_token_secret_namespace,
        )
        token = data.get(self.settings.admin_token_field, "")
        if not token:
            raise StorageError("admin token is empty")
        return token

    def rotate_admin_token(self, issue_token: Callable[[], str]) -> str:
        """Issue a token, persist it, and return what the store actually holds.

        Args:
            issue_token: Callable producing a fresh admin token

        Returns:
            Token read back from the admin token secret

        Raises:
            StorageError: If the write fails or the read-back is empty
        """
        name = self.settings.admin_token_secret_name
        namespace = self.settings.admin_token_secret_namespace
        with self._rotation_lock:
            token = issue_token()
            self.store.update_secret(name, namespace, {self.settings.admin_token_field: token})
            persisted = self.cached_admin_token()
        logger.info("Admin token refreshed in secret %s/%s", namespace, name)
        return persisted
