"""
Authenticated principal types.

A request is made by exactly one of an admin, a developer or a client user. The principal is
resolved once from the bearer token and passed explicitly to handlers as a tagged union
discriminated on `kind`.
"""

from typing import Dict, List, Literal, Union

from pydantic import BaseModel, Field

OwnerType = Literal["User", "Developer", "Admin"]

PermissionModule = Literal["users", "developers", "projects", "themes", "analytics", "notifications", "settings"]
PermissionAction = Literal["create", "read", "update", "delete"]


class AdminPermission(BaseModel):
    module: PermissionModule
    actions: List[PermissionAction] = Field(default_factory=list)


class AdminPrincipal(BaseModel):
    kind: Literal["admin"] = "admin"
    id: str
    name: str
    email: str
    role: Literal["admin", "owner"] = "admin"
    permissions: List[AdminPermission] = Field(default_factory=list)

    @property
    def owner_type(self) -> OwnerType:
        return "Admin"

    def has_permission(self, module: str, action: str) -> bool:
        """Owners hold every permission. Other admins need an explicit module/action grant."""
        if self.role == "owner":
            return True
        return any(p.module == module and action in p.actions for p in self.permissions)


class DeveloperPrincipal(BaseModel):
    kind: Literal["developer"] = "developer"
    id: str
    name: str
    email: str
    role: str = "developer"
    is_verified: bool = False

    @property
    def owner_type(self) -> OwnerType:
        return "Developer"


class UserPrincipal(BaseModel):
    kind: Literal["user"] = "user"
    id: str
    name: str
    email: str
    role: str = "client"
    is_premium: bool = False

    @property
    def owner_type(self) -> OwnerType:
        return "User"


Principal = Union[AdminPrincipal, DeveloperPrincipal, UserPrincipal]

# Token `type` claim -> collection holding that principal
PRINCIPAL_COLLECTIONS: Dict[str, str] = {
    "admin": "admins",
    "developer": "developers",
    "user": "users",
}
