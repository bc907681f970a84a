"""
Secondary reward token emission schedule.

The secondary reward is minted in proportion to the primary reward claimed
from the pool, at a rate that steps down as more of the secondary token is
emitted. Minted supply is divided into cliffs of ``reduction_per_cliff``
tokens; each cliff lowers the mint ratio, and past the last cliff (or once
``max_emission_supply`` has been emitted) nothing more is minted.

    emissions_minted = total_supply - initial_mint_amount - externally_minted
    cliff            = emissions_minted // reduction_per_cliff
    reduction        = (total_cliffs - cliff) * 5 // 2 + 700
    amount           = primary_amount * reduction // total_cliffs

``externally_minted`` is supply created outside the schedule (the secondary
token's ``minter_minted`` record). It is not emission and must not advance
the cliff.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..vault_exceptions import ConfigurationError
from .safe_math import SafeMath

DEFAULT_TOTAL_CLIFFS = 500
DEFAULT_REDUCTION_PER_CLIFF = 10**23
DEFAULT_INITIAL_MINT_AMOUNT = 5 * 10**25
DEFAULT_MAX_EMISSION_SUPPLY = 5 * 10**25


@dataclass(frozen=True)
class EmissionState:
    """Emission position derived from the live secondary token supply."""

    total_supply: int
    initial_mint_amount: int
    externally_minted: int
    emissions_minted: int
    cliff: int
    total_cliffs: int
    reduction_per_cliff: int
    max_emission_supply: int

    @property
    def exhausted(self) -> bool:
        return (
            self.emissions_minted >= self.max_emission_supply
            or self.cliff >= self.total_cliffs
        )

    @property
    def remaining(self) -> int:
        return max(self.max_emission_supply - self.emissions_minted, 0)


@dataclass(frozen=True)
class EmissionCurve:
    """Cliff-based decaying mint schedule for the secondary reward token."""

    total_cliffs: int = DEFAULT_TOTAL_CLIFFS
    reduction_per_cliff: int = DEFAULT_REDUCTION_PER_CLIFF
    initial_mint_amount: int = DEFAULT_INITIAL_MINT_AMOUNT
    max_emission_supply: int = DEFAULT_MAX_EMISSION_SUPPLY

    def __post_init__(self) -> None:
        if self.total_cliffs <= 0:
            raise ConfigurationError("Emission curve needs at least one cliff")
        if self.reduction_per_cliff <= 0:
            raise ConfigurationError("Emission curve reduction_per_cliff must be positive")
        if self.initial_mint_amount < 0 or self.max_emission_supply < 0:
            raise ConfigurationError("Emission curve supplies cannot be negative")

    def state(self, secondary_total_supply: int, externally_minted: int = 0) -> EmissionState:
        """
        Derive the emission position for a given secondary token supply.

        Raises:
            PrecisionError: If the supply is below the initial and external mints
        """
        SafeMath.require_uint(secondary_total_supply, "secondary_total_supply")
        SafeMath.require_uint(externally_minted, "externally_minted")

        emissions_minted = SafeMath.safe_sub(
            SafeMath.safe_sub(secondary_total_supply, self.initial_mint_amount, name="emissions_minted"),
            externally_minted,
            name="emissions_minted",
        )
        return EmissionState(
            total_supply=secondary_total_supply,
            initial_mint_amount=self.initial_mint_amount,
            externally_minted=externally_minted,
            emissions_minted=emissions_minted,
            cliff=emissions_minted // self.reduction_per_cliff,
            total_cliffs=self.total_cliffs,
            reduction_per_cliff=self.reduction_per_cliff,
            max_emission_supply=self.max_emission_supply,
        )

    def reduction(self, cliff: int) -> int:
        """Mint ratio numerator for a cliff, out of total_cliffs."""
        return (self.total_cliffs - cliff) * 5 // 2 + 700

    def mintable(
        self,
        primary_amount: int,
        secondary_total_supply: int,
        externally_minted: int = 0,
    ) -> int:
        """
        Secondary tokens newly mintable for a primary reward claim.

        Args:
            primary_amount: Primary reward claimed
            secondary_total_supply: Live secondary token total supply
            externally_minted: Secondary supply minted outside the schedule

        Returns:
            Amount in [0, max_emission_supply - emissions_minted]
        """
        SafeMath.require_uint(primary_amount, "primary_amount")
        state = self.state(secondary_total_supply, externally_minted)
        if state.exhausted:
            return 0

        amount = SafeMath.mul_div(
            primary_amount, self.reduction(state.cliff), self.total_cliffs, name="emission"
        )
        return min(amount, state.remaining)
