"""
Role-based access control for vault administration.

Privileged vault functions (changing incentive configuration) require the
caller to hold a role. Only the access-control admin can grant or revoke
roles, and every change is kept in an audit trail.
"""

from __future__ import annotations

import copy
import functools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Set

from ..vault_exceptions import AuthorizationError, ConfigurationError
from .erc20 import is_null_address

logger = logging.getLogger(__name__)


class Role(Enum):
    """Roles recognised by the vault."""
    ADMIN = "admin"
    VAULT_ADMIN = "vault_admin"
    REWARD_OPERATOR = "reward_operator"
    PRICE_FEEDER = "price_feeder"


@dataclass
class RoleBasedAccessControl:
    """
    Role registry with an admin that manages membership.

    Security:
    - Only the admin can grant/revoke roles
    - Audit trail of role changes
    """

    # Admin address (can grant/revoke roles)
    admin_address: str = ""

    # Role assignments: role -> set of addresses
    roles: Dict[str, Set[str]] = field(default_factory=dict)

    # Audit log
    role_changes: list = field(default_factory=list)

    def __post_init__(self) -> None:
        for role in Role:
            self.roles.setdefault(role.value, set())

        if self.admin_address:
            self.admin_address = self.admin_address.lower()
            self.roles[Role.ADMIN.value].add(self.admin_address)

    def grant_role(self, caller: str, role: str, address: str) -> bool:
        """
        Grant a role to an address.

        Args:
            caller: Address requesting the change (must be admin)
            role: Role to grant
            address: Address to grant role to

        Raises:
            AuthorizationError: If caller is not admin
            ConfigurationError: If address is null
        """
        self._require_admin(caller)
        if is_null_address(address):
            raise ConfigurationError("Cannot grant a role to the zero address")

        address_norm = address.lower()
        self.roles.setdefault(role, set()).add(address_norm)
        self._audit("grant", role, address_norm, caller)

        logger.info(
            "Role granted",
            extra={
                "event": "rbac.role_granted",
                "role": role,
                "address": address_norm[:10],
                "admin": caller.lower()[:10],
            }
        )
        return True

    def revoke_role(self, caller: str, role: str, address: str) -> bool:
        """Revoke a role from an address (admin only)."""
        self._require_admin(caller)

        address_norm = address.lower()
        if role in self.roles:
            self.roles[role].discard(address_norm)
        self._audit("revoke", role, address_norm, caller)

        logger.info(
            "Role revoked",
            extra={
                "event": "rbac.role_revoked",
                "role": role,
                "address": address_norm[:10],
                "admin": caller.lower()[:10],
            }
        )
        return True

    def has_role(self, role: str, address: str) -> bool:
        return address.lower() in self.roles.get(role, set())

    def require_role(self, caller: str, role: str) -> None:
        """
        Raise unless caller holds role.

        Raises:
            AuthorizationError: If the role is not assigned
        """
        if not self.has_role(role, caller):
            logger.warning(
                "Access denied: role not assigned",
                extra={
                    "event": "rbac.role_not_assigned",
                    "address": caller.lower()[:10],
                    "required_role": role,
                }
            )
            raise AuthorizationError(
                f"Unauthorized: caller {caller[:10]} does not have role '{role}'",
                details={"caller": caller.lower(), "role": role},
            )

    def get_role_members(self, role: str) -> Set[str]:
        return self.roles.get(role, set()).copy()

    def snapshot(self) -> dict[str, Any]:
        return {"roles": copy.deepcopy(self.roles), "role_changes": list(self.role_changes)}

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.roles = copy.deepcopy(snapshot["roles"])
        self.role_changes = list(snapshot["role_changes"])

    def _require_admin(self, caller: str) -> None:
        if not self.admin_address or caller.lower() != self.admin_address:
            raise AuthorizationError(f"Unauthorized: caller {caller[:10]} is not admin")

    def _audit(self, action: str, role: str, address: str, admin: str) -> None:
        self.role_changes.append({
            "action": action,
            "role": role,
            "address": address,
            "admin": admin.lower(),
            "timestamp": time.time(),
        })


def requires_role(role: Role) -> Callable:
    """
    Decorator to require a role on a contract method.

    The decorated method must take ``caller`` as its first argument and its
    instance must expose the registry as ``self.rbac``.

    Usage:
        @requires_role(Role.VAULT_ADMIN)
        def set_config(self, caller: str, ...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, caller: str, *args, **kwargs):
            self.rbac.require_role(caller, role.value)
            return func(self, caller, *args, **kwargs)
        return wrapper
    return decorator
