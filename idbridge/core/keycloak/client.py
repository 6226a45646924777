"""Low-level HTTP client for the Keycloak API.

Handles transport, bearer authentication and JSON decoding. Retries are left
to callers.
"""
from __future__ import annotations
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

import requests

from .endpoints import EndpointResolver
from .exceptions import DirectoryError, KeycloakAPIError, TransportError

if TYPE_CHECKING:
    from .tokens import TokenBroker

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60

Body = Union[str, bytes, Dict[str, str], None]


class HttpTransport:
    """Issues one HTTP request per call and returns the raw response body.

    Usage:
        transport = HttpTransport()
        body = transport.request("GET", "http://keycloak/auth/admin/realms/master/users", headers)
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT):
        """Initialize transport.

        Args:
            session: Optional pre-configured requests session
            timeout: Per-request timeout in seconds
        """
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Body = None,
    ) -> bytes:
        """Execute a request and return the drained response body.

        Args:
            method: HTTP verb
            url: Absolute request URL
            headers: Request headers
            body: Encoded payload (form dict or serialized JSON)

        Returns:
            Response body bytes

        Raises:
            TransportError: If no response could be obtained or read
            KeycloakAPIError: If the response status is not 2xx
        """
        try:
            resp = self.session.request(method, url, headers=headers, data=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(method, url, str(exc)) from exc

        try:
            content = resp.content
            if not 200 <= resp.status_code < 300:
                raise KeycloakAPIError(resp.status_code, resp.text, url)
        except requests.RequestException as exc:
            raise TransportError(method, url, str(exc)) from exc
        finally:
            resp.close()
        return content


class IdentityClient:
    """Authenticated request layer over the Keycloak admin REST API.

    A fresh admin token is requested for every call; nothing is cached.

    Usage:
        client = IdentityClient(broker, resolver)
        users = client.get("/users")
        client.post("/groups", {"name": "ops"})
    """

    def __init__(
        self,
        broker: "TokenBroker",
        resolver: EndpointResolver,
        transport: Optional[HttpTransport] = None,
    ):
        self.broker = broker
        self.resolver = resolver
        self.transport = transport or broker.transport

    def _headers(self) -> Dict[str, str]:
        token = self.broker.admin_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def request(self, method: str, path: str, payload: Any = None) -> bytes:
        """Execute an authenticated request against the admin endpoint.

        Args:
            method: HTTP verb
            path: Path below the admin realm URL (e.g. "/users")
            payload: JSON-serializable body, or None

        Returns:
            Raw response body
        """
        url = f"{self.resolver.resolve(admin=True)}{path}"
        body = json.dumps(payload) if payload is not None else None
        return self.transport.request(method, url, self._headers(), body)

    def get(self, path: str) -> Any:
        """Execute GET and decode the JSON response.

        Raises:
            DirectoryError: If the body is not valid JSON
        """
        raw = self.request("GET", path)
        try:
            return json.loads(raw or b"null")
        except ValueError as exc:
            raise DirectoryError(f"Undecodable response from {path}: {exc}") from exc

    def post(self, path: str, payload: Any = None) -> bytes:
        return self.request("POST", path, payload)

    def put(self, path: str, payload: Any = None) -> bytes:
        return self.request("PUT", path, payload)

    def delete(self, path: str, payload: Any = None) -> bytes:
        return self.request("DELETE", path, payload)
