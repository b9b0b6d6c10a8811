"""Fixtures for the directory client and tools: an in-memory Auth0 tenant."""

import json

import httpx
import pytest

from toolbridge.directory import DirectoryClientFactory, DirectoryCredentials, register_directory_tools
from toolbridge.mcp.dispatcher import ProtocolDispatcher
from toolbridge.mcp.registry import ToolRegistry

TENANT = "tenant.auth0.com"


class FakeTenant:
    """
    Serves the handful of management endpoints the tools call.

    ``requests`` keeps every request seen; ``fail_with`` forces the next
    API response to be an error.
    """

    def __init__(self):
        self.requests = []
        self.users = {
            "auth0|1": {
                "user_id": "auth0|1",
                "email": "ada@acme.io",
                "name": "Ada",
                "created_at": "2024-01-01T00:00:00.000Z",
                "last_login": None,
                "logins_count": 3,
                "identities": [{"provider": "auth0"}],
            }
        }
        self.issued_tokens = 0
        self.fail_with = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/token":
            body = json.loads(request.content)
            if body.get("client_secret") != "s3cret":
                return httpx.Response(401, json={"error": "access_denied", "error_description": "Unauthorized"})
            self.issued_tokens += 1
            return httpx.Response(200, json={"access_token": f"issued-{self.issued_tokens}", "token_type": "Bearer"})

        if self.fail_with is not None:
            status, message = self.fail_with
            return httpx.Response(status, json={"statusCode": status, "message": message})

        method = request.method
        if path == "/api/v2/users" and method == "GET":
            users = list(self.users.values())
            return httpx.Response(200, json={"users": users, "total": len(users), "start": 0})
        if path == "/api/v2/users" and method == "POST":
            body = json.loads(request.content)
            user = {"user_id": f"auth0|{len(self.users) + 1}", "email": body["email"]}
            self.users[user["user_id"]] = user
            return httpx.Response(201, json=user)
        if path == "/api/v2/users-by-email":
            email = request.url.params["email"]
            return httpx.Response(200, json=[u for u in self.users.values() if u["email"] == email])
        if path.startswith("/api/v2/users/") and path.endswith("/roles"):
            return httpx.Response(204)
        if path.startswith("/api/v2/users/"):
            user_id = path[len("/api/v2/users/"):]
            user = self.users.get(user_id)
            if user is None:
                return httpx.Response(404, json={"statusCode": 404, "message": "The user does not exist."})
            if method == "PATCH":
                user.update(json.loads(request.content))
            if method == "DELETE":
                del self.users[user_id]
                return httpx.Response(204)
            return httpx.Response(200, json=user)
        if path == "/api/v2/clients" and method == "GET":
            return httpx.Response(200, json=[{"client_id": "c1", "name": "Portal"}])
        if path == "/api/v2/clients" and method == "POST":
            body = json.loads(request.content)
            return httpx.Response(201, json={"client_id": "c2", **body})
        if path == "/api/v2/roles":
            return httpx.Response(200, json=[{"id": "rol_1", "name": "admin"}])
        return httpx.Response(404, json={"message": f"No route for {method} {path}"})

    def api_requests(self):
        return [r for r in self.requests if r.url.path != "/oauth/token"]


@pytest.fixture
def tenant():
    return FakeTenant()


@pytest.fixture
def transport(tenant):
    return httpx.MockTransport(tenant.handler)


@pytest.fixture
def credentials():
    return DirectoryCredentials(domain=TENANT, client_id="cid", client_secret="s3cret")


@pytest.fixture
def factory(credentials, transport):
    return DirectoryClientFactory(credentials, transport=transport)


@pytest.fixture
def directory_dispatcher(factory):
    registry = ToolRegistry()
    register_directory_tools(registry, factory)
    return ProtocolDispatcher(registry)
