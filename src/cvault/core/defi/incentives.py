"""
Three-way split of claimed rewards.

For each reward stream i:

    locker_cut[i] = amount[i] * locker_incentive_bps // INCENTIVE_BASIS
    caller_cut[i] = amount[i] - locker_cut[i]

and for the bundle as a whole:

    asset_value        = sum(amount[i] * price[i]) // asset_price
    amount_to_compound = asset_value * claimer_incentive_bps // INCENTIVE_BASIS

Payout policy: the caller receives the claimed tokens net of the locker
cut, so no more reward tokens leave the vault than were claimed.

Compound fraction: the claimer incentive rate is the share of the bundle's
asset value the caller pays in. The ``INCENTIVE_BASIS - rate`` form is not
supported.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..vault_exceptions import InvalidAmountError, PrecisionError
from .safe_math import SafeMath
from .vault_config import INCENTIVE_BASIS, VaultConfig

MAX_REWARD_STREAMS = 2


@dataclass(frozen=True)
class RewardSplit:
    """Result of splitting a reward bundle."""

    amounts: tuple[int, ...]
    locker_cuts: tuple[int, ...]
    caller_cuts: tuple[int, ...]
    asset_value: int
    amount_to_compound: int

    @property
    def total_locker_cut(self) -> int:
        return sum(self.locker_cuts)


def locker_cut(amount: int, locker_incentive_bps: int) -> int:
    return SafeMath.mul_div(amount, locker_incentive_bps, INCENTIVE_BASIS, name="locker_cut")


def asset_value(amounts: Sequence[int], reward_prices: Sequence[int], asset_price: int) -> int:
    """USD value of the reward bundle expressed in pooled-asset units."""
    _require_price(asset_price, "asset")
    usd_total = 0
    for index, (amount, price) in enumerate(zip(amounts, reward_prices)):
        _require_price(price, f"reward[{index}]")
        usd_total = SafeMath.safe_add(
            usd_total,
            SafeMath.safe_mul(amount, price, name="reward_value"),
            name="reward_value",
        )
    return SafeMath.safe_div(usd_total, asset_price, name="asset_value")


def compute_split(
    amounts: Sequence[int],
    reward_prices: Sequence[int],
    asset_price: int,
    config: VaultConfig,
) -> RewardSplit:
    """
    Compute locker cuts, caller cuts and the asset amount to compound.

    Args:
        amounts: Reward token amounts, one or two streams
        reward_prices: USD price per stream, same order as amounts
        asset_price: USD price of the pooled asset
        config: Incentive configuration to apply

    Raises:
        InvalidAmountError: On an unusable amounts/prices layout
        PrecisionError: On a non-positive price or uint256 overflow
    """
    if not 1 <= len(amounts) <= MAX_REWARD_STREAMS:
        raise InvalidAmountError(
            f"Expected 1 to {MAX_REWARD_STREAMS} reward streams, got {len(amounts)}"
        )
    if len(amounts) != len(reward_prices):
        raise InvalidAmountError(
            f"Amounts and prices must have the same length ({len(amounts)} != {len(reward_prices)})"
        )
    for index, amount in enumerate(amounts):
        if isinstance(amount, int) and not isinstance(amount, bool) and amount < 0:
            raise InvalidAmountError(f"Reward amount {index} cannot be negative")
        SafeMath.require_uint(amount, f"amounts[{index}]")

    lockers = tuple(locker_cut(amount, config.locker_incentive_bps) for amount in amounts)
    callers = tuple(amount - cut for amount, cut in zip(amounts, lockers))
    value = asset_value(amounts, reward_prices, asset_price)
    to_compound = SafeMath.mul_div(
        value, config.claimer_incentive_bps, INCENTIVE_BASIS, name="amount_to_compound"
    )

    return RewardSplit(
        amounts=tuple(amounts),
        locker_cuts=lockers,
        caller_cuts=callers,
        asset_value=value,
        amount_to_compound=to_compound,
    )


class IncentiveSplitter:
    """Stateless splitter bound to a price oracle."""

    def __init__(self, oracle) -> None:
        self.oracle = oracle

    def quote(self, reward_tokens: Sequence[str], asset_token: str) -> tuple[list[int], int]:
        """Fetch fresh prices for the reward tokens and the pooled asset."""
        return [self.oracle.price(token) for token in reward_tokens], self.oracle.price(asset_token)

    def split(
        self,
        amounts: Sequence[int],
        reward_tokens: Sequence[str],
        asset_token: str,
        config: VaultConfig,
    ) -> RewardSplit:
        prices, asset_price = self.quote(reward_tokens[: len(amounts)], asset_token)
        return compute_split(amounts, prices, asset_price, config)


def _require_price(price: int, label: str) -> None:
    if isinstance(price, bool) or not isinstance(price, int):
        raise PrecisionError(f"Price for {label} must be an integer")
    if price <= 0:
        raise PrecisionError(f"Invalid price for {label}: {price}", details={"token": label})
