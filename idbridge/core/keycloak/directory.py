"""Keycloak directory orchestration: users, groups, roles and their bindings.

Mutating operations follow the same shape: resolve names to ids, build the
payload, then issue the call. A name that resolves to nothing yields an empty
id and the call still goes out; the IdP answers with its own error.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Tuple, TypeVar

from .client import IdentityClient
from .exceptions import (
    DeadlineExceededError,
    DirectoryError,
    IncompleteUserError,
    KeycloakAPIError,
    TransportError,
    UserNotFoundError,
)
from .models import MASTER_REALM, Group, GroupMembership, Role, User, UserCredential
from .retry import retry_until_deadline
from .tokens import TokenBroker, context_with_token

logger = logging.getLogger(__name__)

E = TypeVar("E")

DEFAULT_RETRY_TIMEOUT = 30.0
DEFAULT_RETRY_INTERVAL = 5.0


class DirectoryOperations:
    """CRUD and binding operations over the Keycloak master realm directory."""

    def __init__(
        self,
        client: IdentityClient,
        broker: TokenBroker,
        retry_timeout: float = DEFAULT_RETRY_TIMEOUT,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ):
        """Initialize directory operations.

        Args:
            client: Authenticated identity client
            broker: Token broker behind the client
            retry_timeout: Deadline for read-after-write polling (seconds)
            retry_interval: Delay between polling attempts (seconds)
        """
        self.client = client
        self.broker = broker
        self.retry_timeout = retry_timeout
        self.retry_interval = retry_interval

    # ─────────────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────────────
    def _list(self, fn: str, path: str, factory: Callable[[dict], E]) -> List[E]:
        try:
            items = self.client.get(path)
        except (TransportError, KeycloakAPIError) as exc:
            logger.error("%s: %s", fn, exc)
            raise DirectoryError(f"{fn}: {exc}") from exc
        except DirectoryError as exc:
            logger.error("%s: %s", fn, exc)
            raise
        if not isinstance(items, list):
            raise DirectoryError(f"{fn}: expected a JSON array from {path}")
        try:
            return [factory(item) for item in items]
        except (AttributeError, TypeError) as exc:
            raise DirectoryError(f"{fn}: malformed entry in {path}: {exc}") from exc

    def list_roles(self) -> List[Role]:
        """List all realm roles."""
        return self._list("list_roles", "/roles", Role.from_dict)

    def list_users(self) -> List[User]:
        """List all users."""
        return self._list("list_users", "/users", User.from_dict)

    def list_groups(self) -> List[Group]:
        """List all top-level groups."""
        groups = self._list("list_groups", "/groups", Group.from_dict)
        logger.debug("list of groups: %s", [g.name for g in groups])
        return groups

    def list_user_roles(self, username: str) -> List[Role]:
        """List realm roles mapped directly to a user."""
        user_id = self.resolve_user_id(username)
        return self._list("list_user_roles", f"/users/{user_id}/role-mappings/realm", Role.from_dict)

    def list_effective_user_roles(self, username: str) -> List[Role]:
        """List effective realm roles of a user, composites expanded."""
        user_id = self.resolve_user_id(username)
        return self._list(
            "list_effective_user_roles",
            f"/users/{user_id}/role-mappings/realm/composite",
            Role.from_dict,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Name -> id resolution
    # ─────────────────────────────────────────────────────────────────────
    def resolve_user_id(self, username: str) -> str:
        """Return the id of the user named exactly username, or ''."""
        for user in self.list_users():
            if user.username == username:
                return user.id
        logger.warning("User '%s' not found; continuing with empty id", username)
        return ""

    def resolve_group_id(self, name: str) -> str:
        """Return the id of the group named exactly name, or ''."""
        for group in self.list_groups():
            if group.name == name:
                return group.id
        logger.warning("Group '%s' not found; continuing with empty id", name)
        return ""

    def resolve_role_id(self, role_name: str) -> str:
        """Return the id of the realm role named exactly role_name, or ''."""
        for role in self.list_roles():
            if role.name == role_name:
                return role.id
        logger.warning("Role '%s' not found; continuing with empty id", role_name)
        return ""

    # ─────────────────────────────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────────────────────────────
    def add_user(self, username: str, first_name: str, last_name: str, email: str, password: str) -> None:
        """Create an enabled user with a non-temporary password."""
        user = User(
            username=username,
            first_name=first_name,
            last_name=last_name,
            email=email,
            enabled=True,
            credentials=[UserCredential(type="password", temporary=False, value=password)],
        )
        self._call("add_user", "POST", "/users", user.to_dict())
        logger.info("User '%s' created", username)

    def delete_user(self, username: str) -> None:
        user_id = self.resolve_user_id(username)
        self._call("delete_user", "DELETE", f"/users/{user_id}")
        logger.info("User '%s' deleted", username)

    def user_context(self, username: str, password: str) -> Dict[str, str]:
        """Log in as a directory user and return its outgoing auth metadata.

        Raises:
            AuthError: If the credentials are rejected
        """
        return context_with_token(self.broker.exchange_token(username, password))

    def fetch_user_details(self, user_id: str) -> Tuple[str, str]:
        """Return (username, email) for a user id, tolerating read-after-write lag.

        Polls the user listing every ``retry_interval`` seconds until a record
        with both fields populated shows up or ``retry_timeout`` elapses.
        Keycloak may briefly list a just-created user with blank fields, or not
        at all; both cases are retried.

        Raises:
            DirectoryError: When the deadline passes without a complete record
        """
        def attempt() -> Tuple[str, str]:
            for user in self.list_users():
                if user.id == user_id:
                    if not user.username or not user.email:
                        raise IncompleteUserError(f"User '{user_id}' listed with empty username/email")
                    return user.username, user.email
            raise UserNotFoundError(f"User '{user_id}' not listed yet")

        try:
            return retry_until_deadline(
                attempt,
                retry_on=DirectoryError,
                interval=self.retry_interval,
                timeout=self.retry_timeout,
            )
        except DeadlineExceededError as exc:
            logger.error("fetch_user_details: %s", exc)
            raise DirectoryError(f"failed to fetch user name/email: [{exc.last_error}]") from exc.last_error

    # ─────────────────────────────────────────────────────────────────────
    # Groups
    # ─────────────────────────────────────────────────────────────────────
    def add_group(self, name: str) -> None:
        """Create a group; no existence check is made."""
        self._call("add_group", "POST", "/groups", {"name": name})
        logger.info("Group '%s' created", name)

    def delete_group(self, name: str) -> None:
        group_id = self.resolve_group_id(name)
        self._call("delete_group", "DELETE", f"/groups/{group_id}")
        logger.info("Group '%s' deleted", name)

    def add_group_to_user(self, username: str, group: str) -> None:
        """Make a user a member of a group."""
        group_id = self.resolve_group_id(group)
        user_id = self.resolve_user_id(username)
        membership = GroupMembership(user_id=user_id, group_id=group_id, realm=MASTER_REALM)
        self._call("add_group_to_user", "PUT", f"/users/{user_id}/groups/{group_id}", membership.to_dict())
        logger.info("User '%s' added to group '%s'", username, group)

    # ─────────────────────────────────────────────────────────────────────
    # Role bindings
    # ─────────────────────────────────────────────────────────────────────
    def _role_payload(self, role: str, description: str) -> List[dict]:
        binding = Role(
            id=self.resolve_role_id(role),
            name=role,
            description=description,
            composite=False,
            client_role=False,
            container_id=MASTER_REALM,
        )
        return [binding.to_dict()]

    def add_role_to_user(self, username: str, role: str, description: str) -> None:
        """Bind a realm role to a user."""
        user_id = self.resolve_user_id(username)
        payload = self._role_payload(role, description)
        self._call("add_role_to_user", "POST", f"/users/{user_id}/role-mappings/realm", payload)
        logger.info("Role '%s' granted to user '%s'", role, username)

    def delete_role_from_user(self, username: str, role: str, description: str) -> None:
        """Remove a realm role binding from a user."""
        user_id = self.resolve_user_id(username)
        payload = self._role_payload(role, description)
        self._call("delete_role_from_user", "DELETE", f"/users/{user_id}/role-mappings/realm", payload)
        logger.info("Role '%s' revoked from user '%s'", role, username)

    def add_role_to_group(self, group: str, role: str, description: str) -> None:
        """Bind a realm role to a group."""
        group_id = self.resolve_group_id(group)
        payload = self._role_payload(role, description)
        self._call("add_role_to_group", "POST", f"/groups/{group_id}/role-mappings/realm", payload)
        logger.info("Role '%s' granted to group '%s'", role, group)

    def delete_role_from_group(self, group: str, role: str, description: str) -> None:
        """Remove a realm role binding from a group."""
        group_id = self.resolve_group_id(group)
        payload = self._role_payload(role, description)
        self._call("delete_role_from_group", "DELETE", f"/groups/{group_id}/role-mappings/realm", payload)
        logger.info("Role '%s' revoked from group '%s'", role, group)

    def _call(self, fn: str, method: str, path: str, payload: Any = None) -> bytes:
        try:
            return self.client.request(method, path, payload)
        except (TransportError, KeycloakAPIError) as exc:
            logger.error("%s: %s", fn, exc)
            raise
