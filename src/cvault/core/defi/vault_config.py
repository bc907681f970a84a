"""
Incentive configuration for the compounding vault.

VaultConfig is an immutable, versioned value. VaultConfigStore owns the
current value together with the immutable upper bounds fixed at vault
construction, validates proposed values against them and swaps the whole
record in a single assignment, so readers only ever see a complete config.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from ..contracts.erc20 import is_null_address
from ..vault_exceptions import ConfigurationError
from .safe_math import BASIS_POINTS, MAX_UINT32

logger = logging.getLogger(__name__)

INCENTIVE_BASIS = BASIS_POINTS


@dataclass(frozen=True)
class VaultConfig:
    """Current incentive rates and the locker rewards payout address."""

    claimer_incentive_bps: int = 0
    locker_incentive_bps: int = 0
    locker_rewards: str = ""
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "claimer_incentive_bps": self.claimer_incentive_bps,
            "locker_incentive_bps": self.locker_incentive_bps,
            "locker_rewards": self.locker_rewards,
            "version": self.version,
        }


@dataclass(frozen=True)
class IncentiveBounds:
    """Immutable maxima for the incentive rates."""

    max_claimer_incentive_bps: int
    max_locker_incentive_bps: int

    def __post_init__(self) -> None:
        for name in ("max_claimer_incentive_bps", "max_locker_incentive_bps"):
            value = getattr(self, name)
            _require_bps(value, name)
            if value > INCENTIVE_BASIS:
                raise ConfigurationError(
                    f"{name} cannot exceed {INCENTIVE_BASIS} bps (got {value})"
                )


def _require_bps(value: int, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer")
    if value < 0 or value > MAX_UINT32:
        raise ConfigurationError(f"{name} must fit in uint32 (got {value})")


@dataclass
class VaultConfigStore:
    """Single write path for the vault configuration."""

    bounds: IncentiveBounds
    _current: VaultConfig = field(default_factory=VaultConfig)

    @property
    def current(self) -> VaultConfig:
        return self._current

    def validate(
        self,
        claimer_incentive_bps: int,
        locker_incentive_bps: int,
        locker_rewards: str,
    ) -> None:
        """
        Check a proposed configuration without applying it.

        Raises:
            ConfigurationError: On out-of-bound rates or a null address
        """
        _require_bps(claimer_incentive_bps, "claimer_incentive_bps")
        _require_bps(locker_incentive_bps, "locker_incentive_bps")

        if claimer_incentive_bps > self.bounds.max_claimer_incentive_bps:
            raise ConfigurationError(
                f"Claimer incentive {claimer_incentive_bps} bps exceeds max "
                f"{self.bounds.max_claimer_incentive_bps} bps",
                details={"field": "claimer_incentive_bps", "value": claimer_incentive_bps},
            )
        if locker_incentive_bps > self.bounds.max_locker_incentive_bps:
            raise ConfigurationError(
                f"Locker incentive {locker_incentive_bps} bps exceeds max "
                f"{self.bounds.max_locker_incentive_bps} bps",
                details={"field": "locker_incentive_bps", "value": locker_incentive_bps},
            )
        if is_null_address(locker_rewards):
            raise ConfigurationError(
                "Locker rewards address cannot be the zero address",
                details={"field": "locker_rewards"},
            )

    def replace(
        self,
        claimer_incentive_bps: int,
        locker_incentive_bps: int,
        locker_rewards: str,
    ) -> VaultConfig:
        """Validate and install a new configuration; returns the new value."""
        self.validate(claimer_incentive_bps, locker_incentive_bps, locker_rewards)

        new_config = replace(
            self._current,
            claimer_incentive_bps=claimer_incentive_bps,
            locker_incentive_bps=locker_incentive_bps,
            locker_rewards=locker_rewards.lower(),
            version=self._current.version + 1,
        )
        self._current = new_config

        logger.info(
            "Vault config replaced",
            extra={
                "event": "vault_config.replaced",
                "version": new_config.version,
                "claimer_incentive_bps": claimer_incentive_bps,
                "locker_incentive_bps": locker_incentive_bps,
                "locker_rewards": new_config.locker_rewards[:10],
            }
        )
        return new_config

    def snapshot(self) -> dict[str, Any]:
        return {"current": self._current}

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._current = snapshot["current"]
