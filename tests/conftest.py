"""Pytest shared fixtures: in-memory Keycloak, secret store and clock."""
import itertools
import json
import pathlib
import sys
import threading
from collections import defaultdict
from typing import Dict, Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from idbridge.config import BridgeSettings
from idbridge.core.bridge import IdentityBridge
from idbridge.core.keycloak import (
    APPLICATION_OWNER,
    APPLICATION_USER,
    DEFAULT_ROLES,
    INFRASTRUCTURE_OWNER,
    KeycloakAPIError,
    SecretStore,
    StorageError,
)
from idbridge.core.keycloak import retry as retry_module

KC_URL = "http://kc:8080"
ADMIN_BASE = f"{KC_URL}/auth/admin/realms/master"
OIDC_BASE = f"{KC_URL}/auth/realms/master"
ADMIN_PASSWORD = "admin-pass"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """Prevent unit tests from reaching a live Keycloak through requests."""
    if request.node.get_closest_marker("integration"):
        return

    def _refuse(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")

    monkeypatch.setattr(requests.Session, "request", _refuse)


# ─────────────────────────────────────────────────────────────────────────────
# Fake collaborators
# ─────────────────────────────────────────────────────────────────────────────
class FakeSecretStore(SecretStore):
    """Dict-backed secret store keyed by (namespace, name).

    With drop_updates=True, writes are accepted but never stored, like a store
    that silently discards unknown fields.
    """

    def __init__(self, secrets: Optional[Dict] = None, drop_updates: bool = False):
        self.secrets = {key: dict(value) for key, value in (secrets or {}).items()}
        self.drop_updates = drop_updates
        self.reads = []
        self.writes = []

    def get_secret(self, name, namespace):
        self.reads.append((namespace, name))
        try:
            return dict(self.secrets[(namespace, name)])
        except KeyError:
            raise StorageError(f"secret {namespace}/{name} not found")

    def update_secret(self, name, namespace, data):
        if (namespace, name) not in self.secrets:
            raise StorageError(f"secret {namespace}/{name} not found")
        self.writes.append((namespace, name, dict(data)))
        if not self.drop_updates:
            self.secrets[(namespace, name)].update(data)


class FakeKeycloak:
    """In-memory Keycloak master realm speaking the HttpTransport interface."""

    def __init__(self):
        self.passwords = {"px-central-admin": ADMIN_PASSWORD}
        self.users: Dict[str, dict] = {}
        self.groups: Dict[str, dict] = {}
        self.roles: Dict[str, dict] = {}
        self.user_roles = defaultdict(list)
        self.group_roles = defaultdict(list)
        self.memberships = defaultdict(set)
        self.tokens = set()
        self.calls = []
        self.admin_calls = []
        self._lag: Dict[str, list] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        for name in (APPLICATION_OWNER, APPLICATION_USER, INFRASTRUCTURE_OWNER, DEFAULT_ROLES):
            self.add_role(name)

    # seeding helpers
    def _new_id(self, kind):
        return f"{kind}-{next(self._ids)}"

    def add_role(self, name):
        role_id = self._new_id("role")
        self.roles[role_id] = {
            "id": role_id,
            "name": name,
            "description": f"{name} role",
            "composite": False,
            "clientRole": False,
            "containerId": "master",
        }
        return role_id

    def seed_user(self, username, email="", password=None, user_id=None):
        user_id = user_id or self._new_id("user")
        self.users[user_id] = {
            "id": user_id,
            "username": username,
            "firstName": username.title(),
            "lastName": "Test",
            "email": email or f"{username}@example.com",
            "emailVerified": False,
            "enabled": True,
        }
        if password:
            self.passwords[username] = password
        return user_id

    def seed_group(self, name):
        group_id = self._new_id("group")
        self.groups[group_id] = {"id": group_id, "name": name, "path": f"/{name}", "subGroups": []}
        return group_id

    def lag_user(self, user_id, polls, field="email"):
        """Blank a field (or hide the user with field=None) for the next polls listings."""
        self._lag[user_id] = [field, polls]

    def role_id(self, name):
        return next(r["id"] for r in self.roles.values() if r["name"] == name)

    def calls_to(self, method, path):
        return [c for c in self.admin_calls if c[0] == method and c[1] == path]

    # transport interface
    def request(self, method, url, headers=None, body=None):
        with self._lock:
            self.calls.append((method, url, headers, body))
            if url == f"{OIDC_BASE}/protocol/openid-connect/token":
                return self._issue_token(method, headers or {}, body or {})
            if not url.startswith(ADMIN_BASE):
                raise KeycloakAPIError(404, "Not Found", url)
            auth = (headers or {}).get("Authorization", "")
            if not auth.startswith("Bearer ") or auth[len("Bearer "):] not in self.tokens:
                raise KeycloakAPIError(401, "HTTP 401 Unauthorized", url)
            path = url[len(ADMIN_BASE):]
            payload = json.loads(body) if body else None
            self.admin_calls.append((method, path, payload))
            return self._route(method, path.strip("/").split("/"), payload, url)

    def _issue_token(self, method, headers, form):
        url = f"{OIDC_BASE}/protocol/openid-connect/token"
        if method != "POST" or headers.get("Content-Type") != "application/x-www-form-urlencoded":
            raise KeycloakAPIError(400, "invalid_request", url)
        if form.get("grant_type") != "password" or form.get("client_id") != "pxcentral":
            raise KeycloakAPIError(400, "unsupported_grant_type", url)
        username = form.get("username")
        if self.passwords.get(username) != form.get("password") or not form.get("password"):
            raise KeycloakAPIError(401, '{"error":"invalid_grant"}', url)
        token = f"tok-{username}-{len(self.tokens) + 1}"
        self.tokens.add(token)
        return json.dumps({"access_token": token, "token_type": "Bearer"}).encode()

    @staticmethod
    def _json(value):
        return json.dumps(value).encode()

    def _entity(self, kind, entity_id, url):
        table = self.users if kind == "users" else self.groups
        if entity_id not in table:
            raise KeycloakAPIError(404, f'{{"error":"{kind[:-1]} not found"}}', url)
        return table[entity_id]

    def _listed_users(self):
        listed = []
        for user in self.users.values():
            lag = self._lag.get(user["id"])
            if lag and lag[1] > 0:
                lag[1] -= 1
                if lag[0] is None:
                    continue
                user = dict(user, **{lag[0]: ""})
            listed.append(user)
        return listed

    def _route(self, method, parts, payload, url):
        if parts == ["users"]:
            if method == "GET":
                return self._json(self._listed_users())
            if method == "POST":
                user_id = self._new_id("user")
                rep = {k: v for k, v in payload.items() if k != "credentials"}
                rep["id"] = user_id
                self.users[user_id] = rep
                for cred in payload.get("credentials") or []:
                    if cred.get("type") == "password":
                        self.passwords[rep["username"]] = cred["value"]
                return b""
        if parts == ["groups"]:
            if method == "GET":
                return self._json(list(self.groups.values()))
            if method == "POST":
                self.seed_group(payload["name"])
                return b""
        if parts == ["roles"] and method == "GET":
            return self._json(list(self.roles.values()))

        if len(parts) == 2 and parts[0] in ("users", "groups") and method == "DELETE":
            self._entity(parts[0], parts[1], url)
            table = self.users if parts[0] == "users" else self.groups
            del table[parts[1]]
            return b""

        if len(parts) >= 4 and parts[0] in ("users", "groups") and parts[2:4] == ["role-mappings", "realm"]:
            self._entity(parts[0], parts[1], url)
            mapping = (self.user_roles if parts[0] == "users" else self.group_roles)[parts[1]]
            if parts[4:] == ["composite"] and parts[0] == "users" and method == "GET":
                effective = list(mapping)
                for group_id in self.memberships[parts[1]]:
                    effective.extend(self.group_roles[group_id])
                effective.append(self.role_id(DEFAULT_ROLES))
                return self._json([self.roles[r] for r in dict.fromkeys(effective)])
            if parts[4:]:
                raise KeycloakAPIError(404, "Not Found", url)
            if method == "GET":
                return self._json([self.roles[r] for r in mapping])
            for rep in payload:
                role = self.roles.get(rep.get("id"))
                if role is None or role["name"] != rep.get("name"):
                    raise KeycloakAPIError(404, '{"error":"Could not find role"}', url)
                if method == "POST" and role["id"] not in mapping:
                    mapping.append(role["id"])
                elif method == "DELETE" and role["id"] in mapping:
                    mapping.remove(role["id"])
            return b""

        if len(parts) == 4 and parts[0] == "users" and parts[2] == "groups" and method == "PUT":
            self._entity("users", parts[1], url)
            self._entity("groups", parts[3], url)
            self.memberships[parts[1]].add(parts[3])
            return b""

        raise KeycloakAPIError(404, "Not Found", url)


class FakeClock:
    """Stands in for the time module inside the retry combinator."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def settings():
    return BridgeSettings(ui_url_override=KC_URL, admin_password=ADMIN_PASSWORD)


@pytest.fixture()
def secret_store():
    return FakeSecretStore({
        ("px-backup", "px-central-admin"): {"credential": ADMIN_PASSWORD},
        ("px-backup", "px-backup-admin-secret"): {"PX_BACKUP_ORG_TOKEN": ""},
        ("px-backup", "pxc-backup-secret"): {
            "OIDC_ENDPOINT": "http://pxcentral-keycloak-http:80/auth/realms/master",
        },
    })


@pytest.fixture()
def keycloak():
    return FakeKeycloak()


@pytest.fixture()
def fake_clock(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr(retry_module, "time", clock)
    return clock


@pytest.fixture()
def bridge(settings, secret_store, keycloak, fake_clock):
    return IdentityBridge.from_settings(settings, store=secret_store, transport=keycloak)


@pytest.fixture()
def directory(bridge):
    return bridge.directory


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires a running Keycloak)"
    )
