"""Role checks used by the admin override entry point."""

from enum import Enum

from app.core.exceptions import AuthorizationError


class UserRole(str, Enum):
    """User roles in the system."""

    MEMBER = "member"
    CLEANER = "cleaner"
    DISPATCHER = "dispatcher"
    ADMIN = "admin"
    OWNER = "owner"


ADMIN_EQUIVALENT_ROLES = {UserRole.ADMIN.value, UserRole.OWNER.value}


def is_admin_role(role: str | None) -> bool:
    """Whether a role string grants admin rights.

    Accepts bare roles (``admin``, ``owner``) and organization-scoped roles
    such as ``org:admin`` or ``org:owner``.
    """
    if not role:
        return False
    normalized = role.strip().lower()
    if normalized in ADMIN_EQUIVALENT_ROLES:
        return True
    return any(normalized.endswith(f":{suffix}") for suffix in ADMIN_EQUIVALENT_ROLES)


def require_admin_role(role: str | None) -> None:
    """Raise AuthorizationError unless the role is admin-equivalent."""
    if not is_admin_role(role):
        raise AuthorizationError("Admin access required")
