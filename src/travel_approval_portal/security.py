"""Role model for the travel desk: who may approve, edit and fulfil."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from .config import ApprovalPolicy, normalize_email


class Permission(StrEnum):
    """Actions guarded by a role check."""

    VIEW = "view"
    CREATE = "create"
    APPROVE = "approve"
    FINAL_APPROVE = "final_approve"
    EDIT_LOGISTICS = "edit_logistics"
    CREATE_ON_BEHALF = "create_on_behalf"
    FULFIL = "fulfil"


class RoleName(StrEnum):
    """Roles within the travel desk."""

    EMPLOYEE = "employee"
    POC = "poc"
    VENDOR = "vendor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Role:
    """Role definition including its permissions."""

    name: RoleName
    permissions: frozenset[Permission]

    def can(self, permission: Permission) -> bool:
        """Return whether the role grants a permission."""

        return permission in self.permissions


# Manager approval is not a role: it is granted per request by chain position.
DEFAULT_ROLES: dict[RoleName, Role] = {
    RoleName.EMPLOYEE: Role(
        name=RoleName.EMPLOYEE,
        permissions=frozenset({Permission.VIEW, Permission.CREATE, Permission.APPROVE}),
    ),
    RoleName.POC: Role(
        name=RoleName.POC,
        permissions=frozenset(
            {
                Permission.VIEW,
                Permission.CREATE,
                Permission.FINAL_APPROVE,
                Permission.EDIT_LOGISTICS,
                Permission.CREATE_ON_BEHALF,
            }
        ),
    ),
    RoleName.VENDOR: Role(
        name=RoleName.VENDOR,
        permissions=frozenset({Permission.VIEW, Permission.FULFIL}),
    ),
    RoleName.ADMIN: Role(name=RoleName.ADMIN, permissions=frozenset(Permission)),
}


@dataclass
class RoleDirectory:
    """Maps user emails to roles; unknown users are employees."""

    assignments: dict[str, set[RoleName]] = field(default_factory=dict)
    roles: dict[RoleName, Role] = field(default_factory=lambda: dict(DEFAULT_ROLES))

    @classmethod
    def from_policy(cls, policy: ApprovalPolicy) -> RoleDirectory:
        directory = cls()
        for email in policy.poc_emails:
            directory.assign(email, RoleName.POC)
        for email in policy.vendor_emails:
            directory.assign(email, RoleName.VENDOR)
        return directory

    def assign(self, email: str, role: RoleName) -> None:
        self.assignments.setdefault(normalize_email(email), set()).add(role)

    def revoke(self, email: str, role: RoleName) -> None:
        self.assignments.get(normalize_email(email), set()).discard(role)

    def roles_for(self, email: str) -> set[RoleName]:
        return self.assignments.get(normalize_email(email)) or {RoleName.EMPLOYEE}

    def has_role(self, email: str, role: RoleName) -> bool:
        return role in self.roles_for(email)

    def can(self, email: str, permission: Permission) -> bool:
        """Return whether any of the user's roles grants ``permission``."""

        return any(self.roles[role].can(permission) for role in self.roles_for(email))
