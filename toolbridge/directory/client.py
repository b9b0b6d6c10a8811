"""
Async client for the Auth0 Management API v2.

A client is bound to one domain and one bearer token and lives for a
single tool invocation; nothing about it is shared between concurrent
calls. ``DirectoryClientFactory.connect`` builds one per call, either from
explicit ``domain``/``token`` arguments or from server-level client
credentials (client-credentials grant).

Usage:
    factory = DirectoryClientFactory(credentials)
    async with factory.connect() as client:
        users = await client.list_users(page=0, per_page=50)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_CONNECTION = "Username-Password-Authentication"
DEFAULT_APP_TYPE = "regular_web"


class DirectoryError(Exception):
    """Raised when the directory API rejects a call or cannot be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class DirectoryCredentials:
    """Server-level machine-to-machine credentials."""

    domain: str
    client_id: str
    client_secret: str = ""

    def __repr__(self) -> str:
        return f"DirectoryCredentials(domain={self.domain!r}, client_id={self.client_id!r})"


def normalize_domain(domain: str) -> str:
    """Strip scheme and trailing slashes: ``https://t.auth0.com/`` → ``t.auth0.com``."""
    value = domain.strip()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix):]
    return value.rstrip("/")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error_description") or body.get("error") or body)
    return str(body)


class DirectoryClient:
    """Thin async wrapper over the management endpoints the tools need."""

    def __init__(
        self,
        domain: str,
        token: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.domain = normalize_domain(domain)
        self._http = httpx.AsyncClient(
            base_url=f"https://{self.domain}/api/v2",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "DirectoryClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        try:
            response = await self._http.request(method, path, params=params, json=json)
        except httpx.RequestError as exc:
            logger.error("Directory API connection error", domain=self.domain, path=path, error=str(exc))
            raise DirectoryError(f"Failed to reach {self.domain}: {exc}") from exc

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "Directory API error",
                domain=self.domain,
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise DirectoryError(
                f"Auth0 API error {response.status_code}: {message}",
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ── users ────────────────────────────────────────────────────

    async def list_users(self, *, page: int = 0, per_page: int = 50, include_totals: bool = True) -> Any:
        return await self._request(
            "GET",
            "/users",
            params={
                "page": page,
                "per_page": per_page,
                "include_totals": "true" if include_totals else "false",
            },
        )

    async def find_users_by_email(self, email: str) -> List[Dict[str, Any]]:
        users = await self._request("GET", "/users-by-email", params={"email": email})
        return users or []

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        connection: str = DEFAULT_CONNECTION,
        verify_email: bool = False,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/users",
            json={
                "email": email,
                "password": password,
                "connection": connection,
                "verify_email": verify_email,
            },
        )

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{quote(user_id, safe='')}")

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/users/{quote(user_id, safe='')}", json=fields)

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{quote(user_id, safe='')}")

    async def assign_roles(self, user_id: str, roles: List[str]) -> None:
        await self._request(
            "POST",
            f"/users/{quote(user_id, safe='')}/roles",
            json={"roles": roles},
        )

    # ── applications / roles ─────────────────────────────────────

    async def list_applications(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/clients") or []

    async def create_application(self, *, name: str, app_type: str = DEFAULT_APP_TYPE) -> Dict[str, Any]:
        return await self._request("POST", "/clients", json={"name": name, "app_type": app_type})

    async def list_roles(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/roles") or []


class DirectoryClientFactory:
    """Builds a fresh ``DirectoryClient`` for every tool invocation."""

    def __init__(
        self,
        credentials: Optional[DirectoryCredentials] = None,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._credentials = credentials
        self._timeout = timeout
        self._transport = transport

    @property
    def has_credentials(self) -> bool:
        return self._credentials is not None

    @asynccontextmanager
    async def connect(
        self,
        domain: Optional[str] = None,
        token: Optional[str] = None,
    ) -> AsyncIterator[DirectoryClient]:
        """
        Yield a client for one call and close it afterwards.

        Explicit ``token`` wins; its domain falls back to the configured one.
        Without a token the configured credentials are exchanged for one.

        Raises:
            DirectoryError: If no usable credentials are available
        """
        if token:
            domain = domain or (self._credentials.domain if self._credentials else None)
            if not domain:
                raise DirectoryError("A domain is required when passing a token")
        elif self._credentials is not None:
            if domain and normalize_domain(domain) != normalize_domain(self._credentials.domain):
                raise DirectoryError(
                    f"No token for domain '{domain}'; pass a token or use the configured domain"
                )
            domain = self._credentials.domain
            token = await self.fetch_token()
        else:
            raise DirectoryError(
                "No directory credentials: pass domain and token, "
                "or configure AUTH0_DOMAIN, AUTH0_CLIENT_ID and AUTH0_CLIENT_SECRET"
            )

        client = DirectoryClient(domain, token, timeout=self._timeout, transport=self._transport)
        try:
            yield client
        finally:
            await client.aclose()

    async def fetch_token(self) -> str:
        """Exchange the configured client credentials for a management token."""
        if self._credentials is None:
            raise DirectoryError("No client credentials configured")

        domain = normalize_domain(self._credentials.domain)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as http:
            try:
                response = await http.post(
                    f"https://{domain}/oauth/token",
                    json={
                        "grant_type": "client_credentials",
                        "client_id": self._credentials.client_id,
                        "client_secret": self._credentials.client_secret,
                        "audience": f"https://{domain}/api/v2/",
                    },
                )
            except httpx.RequestError as exc:
                logger.error("Token request failed", domain=domain, error=str(exc))
                raise DirectoryError(f"Failed to reach {domain}: {exc}") from exc

        if response.is_error:
            message = _error_message(response)
            logger.warning("Token request rejected", domain=domain, status_code=response.status_code)
            raise DirectoryError(
                f"Auth0 token request failed {response.status_code}: {message}",
                status_code=response.status_code,
            )

        token = response.json().get("access_token")
        if not token:
            raise DirectoryError("Auth0 token response did not include an access_token")
        return token
