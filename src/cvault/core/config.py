"""
Compounding vault configuration.

Deployment defaults come from ``CVAULT_*`` environment variables; a
deployment itself is described by VaultSettings, loaded from a YAML file
and validated before anything is built. Reward token identities are always
explicit settings, never constants baked into the vault.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .contracts.erc20 import is_null_address
from .vault_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _env_int(env_var: str, default: int) -> int:
    """Read an integer from the environment, rejecting malformed values."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw.replace("_", ""), 0)
    except ValueError:
        raise ConfigurationError(
            f"{env_var} must be an integer (got {raw!r})",
            details={"env_var": env_var},
        ) from None


MAX_CLAIMER_INCENTIVE_BPS = _env_int("CVAULT_MAX_CLAIMER_INCENTIVE_BPS", 1_000)
MAX_LOCKER_INCENTIVE_BPS = _env_int("CVAULT_MAX_LOCKER_INCENTIVE_BPS", 2_000)

EMISSION_TOTAL_CLIFFS = _env_int("CVAULT_EMISSION_TOTAL_CLIFFS", 500)
EMISSION_REDUCTION_PER_CLIFF = _env_int("CVAULT_EMISSION_REDUCTION_PER_CLIFF", 10**23)
EMISSION_INITIAL_MINT_AMOUNT = _env_int("CVAULT_EMISSION_INITIAL_MINT_AMOUNT", 5 * 10**25)
EMISSION_MAX_SUPPLY = _env_int("CVAULT_EMISSION_MAX_SUPPLY", 5 * 10**25)

ORACLE_MAX_STALENESS = _env_int("CVAULT_ORACLE_MAX_STALENESS", 3600)
REWARD_DURATION = _env_int("CVAULT_REWARD_DURATION", 7 * 24 * 3600)

LOG_LEVEL = os.getenv("CVAULT_LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class TokenSettings:
    """Identity of one token taking part in the vault."""

    name: str
    symbol: str
    address: str
    decimals: int = 18

    @classmethod
    def from_dict(cls, data: Dict[str, Any], label: str) -> "TokenSettings":
        if not isinstance(data, dict):
            raise ConfigurationError(f"{label} token settings must be a mapping")
        missing = [key for key in ("name", "symbol", "address") if not data.get(key)]
        if missing:
            raise ConfigurationError(
                f"{label} token settings missing: {', '.join(missing)}",
                details={"token": label},
            )
        return cls(
            name=str(data["name"]),
            symbol=str(data["symbol"]),
            address=str(data["address"]),
            decimals=int(data.get("decimals", 18)),
        )


@dataclass(frozen=True)
class EmissionSettings:
    total_cliffs: int = EMISSION_TOTAL_CLIFFS
    reduction_per_cliff: int = EMISSION_REDUCTION_PER_CLIFF
    initial_mint_amount: int = EMISSION_INITIAL_MINT_AMOUNT
    max_emission_supply: int = EMISSION_MAX_SUPPLY


@dataclass(frozen=True)
class VaultSettings:
    """Everything needed to deploy one vault."""

    name: str
    symbol: str
    asset: TokenSettings
    primary_reward: TokenSettings
    secondary_reward: Optional[TokenSettings]
    admin: str
    operator: str
    feeder: str
    max_claimer_incentive_bps: int = MAX_CLAIMER_INCENTIVE_BPS
    max_locker_incentive_bps: int = MAX_LOCKER_INCENTIVE_BPS
    emission: EmissionSettings = field(default_factory=EmissionSettings)
    oracle_max_staleness: int = ORACLE_MAX_STALENESS
    reward_duration: int = REWARD_DURATION

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check identities and numeric ranges.

        Raises:
            ConfigurationError: On a malformed, null or duplicated address,
                or a non-positive duration/staleness
        """
        tokens = [("asset", self.asset), ("primary_reward", self.primary_reward)]
        if self.secondary_reward is not None:
            tokens.append(("secondary_reward", self.secondary_reward))

        seen: dict[str, str] = {}
        for label, token in tokens:
            _require_address(token.address, f"{label}.address")
            address = token.address.lower()
            if address in seen:
                raise ConfigurationError(
                    f"{label} shares address {address} with {seen[address]}",
                    details={"field": f"{label}.address"},
                )
            seen[address] = label

        for label in ("admin", "operator", "feeder"):
            _require_address(getattr(self, label), label)

        if self.oracle_max_staleness <= 0:
            raise ConfigurationError("oracle_max_staleness must be positive")
        if self.reward_duration <= 0:
            raise ConfigurationError("reward_duration must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultSettings":
        if not isinstance(data, dict):
            raise ConfigurationError("Vault settings must be a mapping")

        secondary = data.get("secondary_reward")
        emission = data.get("emission") or {}
        try:
            return cls(
                name=str(data.get("name", "Compounding Vault")),
                symbol=str(data.get("symbol", "cvLP")),
                asset=TokenSettings.from_dict(data.get("asset"), "asset"),
                primary_reward=TokenSettings.from_dict(data.get("primary_reward"), "primary_reward"),
                secondary_reward=(
                    TokenSettings.from_dict(secondary, "secondary_reward") if secondary else None
                ),
                admin=str(data.get("admin", "")),
                operator=str(data.get("operator", "")),
                feeder=str(data.get("feeder", "")),
                max_claimer_incentive_bps=int(
                    data.get("max_claimer_incentive_bps", MAX_CLAIMER_INCENTIVE_BPS)
                ),
                max_locker_incentive_bps=int(
                    data.get("max_locker_incentive_bps", MAX_LOCKER_INCENTIVE_BPS)
                ),
                emission=EmissionSettings(
                    total_cliffs=int(emission.get("total_cliffs", EMISSION_TOTAL_CLIFFS)),
                    reduction_per_cliff=int(emission.get("reduction_per_cliff", EMISSION_REDUCTION_PER_CLIFF)),
                    initial_mint_amount=int(emission.get("initial_mint_amount", EMISSION_INITIAL_MINT_AMOUNT)),
                    max_emission_supply=int(emission.get("max_emission_supply", EMISSION_MAX_SUPPLY)),
                ),
                oracle_max_staleness=int(data.get("oracle_max_staleness", ORACLE_MAX_STALENESS)),
                reward_duration=int(data.get("reward_duration", REWARD_DURATION)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid vault settings: {e}") from e


def read_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping from path."""
    if not path.exists():
        raise ConfigurationError(f"Config file {path} does not exist")
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Config file {path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping.")
    return data


def load_settings(path: Path) -> VaultSettings:
    """Load VaultSettings from the ``vault`` section of a YAML file (or its root)."""
    data = read_yaml(path)
    settings = VaultSettings.from_dict(data.get("vault", data))
    logger.info(
        "Vault settings loaded",
        extra={"event": "config.settings_loaded", "path": str(path), "vault_name": settings.name},
    )
    return settings


def _require_address(address: str, label: str) -> None:
    if is_null_address(address):
        raise ConfigurationError(f"{label} cannot be the zero address", details={"field": label})
    if not ADDRESS_PATTERN.match(address):
        raise ConfigurationError(f"{label} is not a 20-byte hex address: {address!r}", details={"field": label})
