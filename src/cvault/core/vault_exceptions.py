"""
Compounding vault exception hierarchy.

Provides typed exceptions for vault operations so callers can tell a
rejected configuration from a slippage abort or a failing collaborator,
and so every abort can be logged and counted precisely.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class VaultError(Exception):
    """Base exception for all vault-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether a fresh call could succeed without changes
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Validation Errors ====================


class ConfigurationError(VaultError):
    """Raised when configuration is missing, out of bounds or invalid.

    Examples: incentive rate above its immutable maximum, null locker
    rewards address, malformed environment value.
    """
    pass


class InvalidAmountError(VaultError):
    """Raised when a caller supplies unusable amounts.

    Examples: negative amount, reward stream lists of different length,
    redeeming more shares than owned.
    """
    pass


class AuthorizationError(VaultError):
    """Raised when a caller lacks the role an operation requires."""
    pass


# ==================== Execution Errors ====================


class SlippageError(VaultError):
    """Raised when the computed compound amount exceeds the caller's ceiling."""

    def __init__(
        self,
        message: str,
        required: int = 0,
        maximum: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, recoverable=True, **kwargs)
        self.required = required
        self.maximum = maximum


class PrecisionError(VaultError):
    """Raised on zero or invalid prices and uint256 overflow/underflow."""
    pass


class ReentrancyError(VaultError):
    """Raised when a locked vault operation is entered a second time."""
    pass


# ==================== External Call Errors ====================


class ExternalCallFailure(VaultError):
    """Raised when a reward pool, price oracle or token call fails."""
    pass


class TokenError(ExternalCallFailure):
    """Raised by token transfer primitives (balance, allowance, owner checks)."""
    pass


class OracleError(ExternalCallFailure):
    """Raised when a price is unsupported or stale."""
    pass


class RewardPoolError(ExternalCallFailure):
    """Raised by the external staking pool."""
    pass
