"""Identity-directory tools: user, application and role management."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from pydantic import Field, model_validator

from ..mcp.registry import ToolRegistry
from ..mcp.validation import Email, Integer, ToolParameters
from .client import DEFAULT_APP_TYPE, DEFAULT_CONNECTION, DirectoryClientFactory, DirectoryError

logger = structlog.get_logger(__name__)

#: Fields kept from each user record returned by ``auth0_list_users``.
USER_SUMMARY_FIELDS = ("user_id", "email", "name", "created_at", "last_login", "logins_count")


class DirectoryAuthParams(ToolParameters):
    domain: Optional[str] = Field(None, min_length=1, description="Auth0 domain")
    token: Optional[str] = Field(None, min_length=1, description="Auth0 management API token")


class ListUsersParams(DirectoryAuthParams):
    page: Integer = Field(0, ge=0, description="Page number")
    per_page: Integer = Field(50, ge=1, le=100, description="Number of users per page")
    include_totals: bool = Field(True, description="Include total count")


class CreateUserParams(DirectoryAuthParams):
    email: Email = Field(..., description="User's email address")
    password: str = Field(..., min_length=8, description="User's password (min 8 characters)")
    connection: str = Field(DEFAULT_CONNECTION, min_length=1, description="Auth0 connection name")
    verify_email: bool = Field(False, description="Whether to verify email")


class UserIdParams(DirectoryAuthParams):
    id: str = Field(..., min_length=1, description="Auth0 user ID")


class UpdateUserParams(UserIdParams):
    email: Optional[Email] = Field(None, description="New email address")
    verify_email: Optional[bool] = Field(None, description="Whether to verify new email")
    password: Optional[str] = Field(None, min_length=8, description="New password (min 8 characters)")
    blocked: Optional[bool] = Field(None, description="Whether to block the user")
    user_metadata: Optional[Dict[str, Any]] = Field(None, description="Custom user metadata")

    @model_validator(mode="after")
    def _require_change(self) -> "UpdateUserParams":
        if not self.changes():
            raise ValueError("at least one field to update is required")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id", "domain", "token"}, exclude_none=True)


class CreateApplicationParams(DirectoryAuthParams):
    name: str = Field(..., min_length=1, description="Name of the application")
    app_type: str = Field(DEFAULT_APP_TYPE, min_length=1, description="Type of the application")


class AssignRolesParams(DirectoryAuthParams):
    user_id: str = Field(..., min_length=1, description="Auth0 user ID")
    roles: List[str] = Field(..., min_length=1, description="Array of role IDs to assign")


def summarize_users(response: Any) -> Dict[str, Any]:
    """Reduce a users page to the summary fields plus a total."""
    if isinstance(response, dict):
        users = response.get("users")
        total = response.get("total")
    else:
        users = response
        total = None
    if not isinstance(users, list):
        raise DirectoryError("Invalid response from Auth0 API")

    summaries = [
        {field: user.get(field) for field in USER_SUMMARY_FIELDS}
        for user in users
    ]
    return {"users": summaries, "total": total if total is not None else len(summaries)}


def register_directory_tools(registry: ToolRegistry, factory: DirectoryClientFactory) -> List[str]:
    """
    Register the directory tools on ``registry``.

    Every handler opens its own client through ``factory`` and closes it
    before returning.

    Returns:
        Names of the registered tools, in registration order.
    """
    names: List[str] = []

    def tool(name: str, description: str, params):
        names.append(name)
        return registry.tool(name, description, params)

    @tool("auth0_list_users", "List users in Auth0", ListUsersParams)
    async def list_users(params: ListUsersParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            response = await client.list_users(
                page=params.page,
                per_page=params.per_page,
                include_totals=params.include_totals,
            )
        return summarize_users(response)

    @tool("auth0_create_user", "Create a new user in Auth0", CreateUserParams)
    async def create_user(params: CreateUserParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            existing = await client.find_users_by_email(params.email)
            if existing:
                logger.info("User already exists", user_id=existing[0].get("user_id"))
                return {"user": existing[0], "message": "User already exists"}
            user = await client.create_user(
                email=params.email,
                password=params.password,
                connection=params.connection,
                verify_email=params.verify_email,
            )
        return {"user": user}

    @tool("auth0_get_user", "Get user details by ID", UserIdParams)
    async def get_user(params: UserIdParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            user = await client.get_user(params.id)
        return {"user": user}

    @tool("auth0_update_user", "Update user properties", UpdateUserParams)
    async def update_user(params: UpdateUserParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            user = await client.update_user(params.id, params.changes())
        return {"user": user}

    @tool("auth0_delete_user", "Delete a user", UserIdParams)
    async def delete_user(params: UserIdParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            await client.delete_user(params.id)
        return {"message": "User deleted successfully"}

    @tool("auth0_create_application", "Create a new application", CreateApplicationParams)
    async def create_application(params: CreateApplicationParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            application = await client.create_application(name=params.name, app_type=params.app_type)
        return {"application": application}

    @tool("auth0_list_applications", "List all applications", DirectoryAuthParams)
    async def list_applications(params: DirectoryAuthParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            applications = await client.list_applications()
        return {"applications": applications}

    @tool("auth0_list_roles", "List all roles", DirectoryAuthParams)
    async def list_roles(params: DirectoryAuthParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            roles = await client.list_roles()
        return {"roles": roles}

    @tool("auth0_assign_roles_to_user", "Assign roles to a user", AssignRolesParams)
    async def assign_roles(params: AssignRolesParams) -> Dict[str, Any]:
        async with factory.connect(params.domain, params.token) as client:
            await client.assign_roles(params.user_id, params.roles)
        return {"message": "Roles assigned successfully"}

    return names
