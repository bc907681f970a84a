"""
Contract primitives used by the vault.

- ERC20: Fungible token and transfer primitive
- Access control: Role registry for privileged vault functions
"""

from .access_control import Role, RoleBasedAccessControl, requires_role
from .erc20 import ZERO_ADDRESS, ERC20Token, TokenEvent, is_null_address

__all__ = [
    "ERC20Token",
    "TokenEvent",
    "ZERO_ADDRESS",
    "is_null_address",
    "Role",
    "RoleBasedAccessControl",
    "requires_role",
]
