"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Environment variables recognised by the bridge
UI_URL_ENV = "PX_CENTRAL_UI_URL"
NAMESPACE_ENV = "PX_BACKUP_NAMESPACE"
OIDC_SECRET_NAME_ENV = "SECRET_NAME"
ADMIN_PASSWORD_ENV = "PX_CENTRAL_ADMIN_PASSWORD"

DEFAULT_NAMESPACE = "px-backup"
DEFAULT_OIDC_SECRET_NAME = "pxc-backup-secret"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """Read a mounted secret file, falling back to an environment variable.

    Used for the admin password so that it can be mounted next to the bridge
    instead of passed on the command line. A blank file counts as missing.
    """
    mounted = Path("/run/secrets") / secret_name
    if mounted.is_file():
        try:
            value = mounted.read_text().strip()
        except OSError as exc:
            logger.warning("[settings] Cannot read mounted secret %s: %s", secret_name, exc)
            value = ""
        if value:
            logger.info("[settings] Admin credential %s taken from mounted secret", secret_name)
            return value

    value = (os.getenv(env_var) or "").strip() if env_var else ""
    if value:
        logger.info("[settings] Admin credential taken from %s", env_var)
        return value
    return None


def _env_or_default(var_name: str, default: str) -> str:
    """Return the stripped env value, or default when unset or blank."""
    value = (os.environ.get(var_name) or "").strip()
    return value or default


@dataclass(frozen=True)
class BridgeSettings:
    """Identity bridge configuration container."""
    # Endpoint discovery
    ui_url_override: str = ""
    backup_namespace: str = DEFAULT_NAMESPACE
    oidc_secret_name: str = DEFAULT_OIDC_SECRET_NAME
    oidc_issuer_field: str = "OIDC_ENDPOINT"
    cluster_dns_suffix: str = "svc.cluster.local"
    realm: str = "master"

    # Token exchange
    client_id: str = "pxcentral"
    token_duration: str = "365d"

    # Administrative identity
    admin_username: str = "px-central-admin"
    admin_password: str = ""
    admin_secret_name: str = "px-central-admin"
    admin_password_field: str = "credential"

    # Cached organization token
    admin_token_secret_name: str = "px-backup-admin-secret"
    admin_token_secret_namespace: str = DEFAULT_NAMESPACE
    admin_token_field: str = "PX_BACKUP_ORG_TOKEN"

    # Timing (seconds)
    request_timeout: float = 60.0
    retry_timeout: float = 30.0
    retry_interval: float = 5.0

    def __repr__(self) -> str:
        masked = "***" if self.admin_password else "''"
        return (
            f"BridgeSettings(ui_url_override={self.ui_url_override!r}, "
            f"backup_namespace={self.backup_namespace!r}, "
            f"oidc_secret_name={self.oidc_secret_name!r}, "
            f"admin_username={self.admin_username!r}, admin_password={masked})"
        )


def load_settings() -> BridgeSettings:
    """Load bridge settings from environment and /run/secrets."""
    ui_url_override = (os.environ.get(UI_URL_ENV) or "").strip()
    backup_namespace = _env_or_default(NAMESPACE_ENV, DEFAULT_NAMESPACE)
    oidc_secret_name = _env_or_default(OIDC_SECRET_NAME_ENV, DEFAULT_OIDC_SECRET_NAME)

    admin_password = _load_secret_from_file("px_central_admin_password", ADMIN_PASSWORD_ENV) or ""
    if not admin_password:
        # The password can still be pulled from the admin secret later on
        logger.info("[settings] No admin password configured; it must be read from the admin secret")

    mode_label = "override" if ui_url_override else "discovery"
    logger.info(
        "[settings] Endpoint=%s; namespace=%s; oidc_secret=%s",
        mode_label, backup_namespace, oidc_secret_name,
    )

    return BridgeSettings(
        ui_url_override=ui_url_override,
        backup_namespace=backup_namespace,
        oidc_secret_name=oidc_secret_name,
        admin_password=admin_password,
    )
