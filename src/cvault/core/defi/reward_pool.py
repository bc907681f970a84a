"""
External staking pool that custodies the pooled asset.

The vault talks to the pool through the RewardPool protocol only.
BaseRewardPool is the in-memory reference implementation used for
simulation and tests:

- Staked balances are 1:1 with deposited asset
- The primary reward streams linearly over a reward period, split
  pro rata by stake (reward-per-token accumulator)
- Claiming the primary reward also mints the secondary reward along the
  emission curve
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from ..contracts.erc20 import ERC20Token, derive_address
from ..vault_exceptions import AuthorizationError, RewardPoolError
from .emission_curve import EmissionCurve
from .safe_math import WAD, SafeMath

if TYPE_CHECKING:
    from ..ledger import Ledger

logger = logging.getLogger(__name__)

DEFAULT_REWARD_DURATION = 7 * 24 * 3600


class RewardPool(Protocol):
    """Interface the vault requires from the staking pool."""

    address: str

    def deposit(self, caller: str, amount: int, on_behalf_of: str) -> int:
        ...

    def withdraw(self, caller: str, amount: int, claim_extras: bool = False) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...

    def get_reward(self, account: str) -> bool:
        ...

    def earned(self, account: str) -> int:
        ...


@dataclass
class BaseRewardPool:
    """
    Reward-streaming staking pool.

    Example usage:
        pool = BaseRewardPool(
            staking_token=asset, reward_token=primary, secondary_token=secondary,
            emission_curve=EmissionCurve(), operator="0xop", ledger=ledger,
        )
        pool.queue_rewards("0xop", 1_000 * 10**18)
    """

    staking_token: ERC20Token
    reward_token: ERC20Token
    ledger: "Ledger"
    operator: str
    secondary_token: ERC20Token | None = None
    emission_curve: EmissionCurve = field(default_factory=EmissionCurve)
    address: str = ""
    duration: int = DEFAULT_REWARD_DURATION

    # Staking state
    total_supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)

    # Reward stream state
    reward_rate: int = 0
    period_finish: int = 0
    last_update_time: int = 0
    reward_per_token_stored: int = 0
    user_reward_per_token_paid: dict[str, int] = field(default_factory=dict)
    rewards: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.address:
            self.address = derive_address("reward_pool", self.staking_token.address, self.reward_token.address)
        self.address = self.address.lower()
        self.operator = self.operator.lower()
        if self.duration <= 0:
            raise RewardPoolError("Reward duration must be positive")
        self.ledger.register(self)

    # ==================== Views ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(account.lower(), 0)

    def last_time_reward_applicable(self) -> int:
        return min(self.ledger.timestamp, self.period_finish)

    def reward_per_token(self) -> int:
        if self.total_supply == 0:
            return self.reward_per_token_stored
        elapsed = max(self.last_time_reward_applicable() - self.last_update_time, 0)
        return self.reward_per_token_stored + elapsed * self.reward_rate * WAD // self.total_supply

    def earned(self, account: str) -> int:
        account_norm = account.lower()
        paid = self.user_reward_per_token_paid.get(account_norm, 0)
        accrued = self.balance_of(account_norm) * (self.reward_per_token() - paid) // WAD
        return accrued + self.rewards.get(account_norm, 0)

    # ==================== Reward Funding ====================

    def queue_rewards(self, caller: str, amount: int, duration: int | None = None) -> bool:
        """
        Fund a new reward period (operator only).

        Any undistributed remainder of the current period rolls into the
        new one.
        """
        if caller.lower() != self.operator:
            raise AuthorizationError(f"RewardPool: caller {caller[:10]} is not operator")
        if amount <= 0:
            raise RewardPoolError("RewardPool: reward amount must be positive")
        period = duration or self.duration

        self._update_reward(None)
        self.reward_token.transfer_from(self.address, caller, self.address, amount)

        now = self.ledger.timestamp
        if now >= self.period_finish:
            self.reward_rate = amount // period
        else:
            leftover = (self.period_finish - now) * self.reward_rate
            self.reward_rate = (amount + leftover) // period
        self.last_update_time = now
        self.period_finish = now + period

        logger.info(
            "Rewards queued",
            extra={
                "event": "reward_pool.rewards_queued",
                "pool": self.address[:10],
                "amount": amount,
                "reward_rate": self.reward_rate,
                "period_finish": self.period_finish,
            }
        )
        return True

    # ==================== Staking ====================

    def deposit(self, caller: str, amount: int, on_behalf_of: str) -> int:
        """Stake ``amount`` of the staking token pulled from caller; returns pool shares."""
        if amount <= 0:
            raise RewardPoolError("RewardPool: cannot stake 0")
        SafeMath.require_uint(amount, "amount")
        beneficiary = on_behalf_of.lower()

        self._update_reward(beneficiary)
        self.staking_token.transfer_from(self.address, caller, self.address, amount)
        self.balances[beneficiary] = self.balance_of(beneficiary) + amount
        self.total_supply += amount

        logger.debug(
            "Pool deposit",
            extra={
                "event": "reward_pool.deposit",
                "pool": self.address[:10],
                "account": beneficiary[:10],
                "amount": amount,
            }
        )
        return amount

    def withdraw(self, caller: str, amount: int, claim_extras: bool = False) -> bool:
        """Unstake ``amount`` back to caller, optionally claiming rewards."""
        if amount <= 0:
            raise RewardPoolError("RewardPool: cannot withdraw 0")
        account = caller.lower()

        self._update_reward(account)
        balance = self.balance_of(account)
        if amount > balance:
            raise RewardPoolError(
                f"RewardPool: withdraw amount exceeds stake ({amount} > {balance})",
                details={"account": account},
            )

        self.balances[account] = balance - amount
        self.total_supply -= amount
        self.staking_token.transfer(self.address, account, amount)

        if claim_extras:
            self.get_reward(account)
        return True

    def get_reward(self, account: str) -> bool:
        """Pay out the primary reward and mint the matching secondary reward."""
        account_norm = account.lower()
        self._update_reward(account_norm)

        reward = self.rewards.get(account_norm, 0)
        if reward == 0:
            return True

        self.rewards[account_norm] = 0
        self.reward_token.transfer(self.address, account_norm, reward)

        minted = 0
        if self.secondary_token is not None:
            minted = self.emission_curve.mintable(
                reward,
                self.secondary_token.total_supply,
                self.secondary_token.minter_minted,
            )
            if minted > 0:
                self.secondary_token.mint(self.address, account_norm, minted)

        logger.info(
            "Reward paid",
            extra={
                "event": "reward_pool.reward_paid",
                "pool": self.address[:10],
                "account": account_norm[:10],
                "primary": reward,
                "secondary": minted,
            }
        )
        return True

    # ==================== Ledger ====================

    def snapshot(self) -> dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "reward_rate": self.reward_rate,
            "period_finish": self.period_finish,
            "last_update_time": self.last_update_time,
            "reward_per_token_stored": self.reward_per_token_stored,
            "user_reward_per_token_paid": dict(self.user_reward_per_token_paid),
            "rewards": dict(self.rewards),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.total_supply = snapshot["total_supply"]
        self.balances = dict(snapshot["balances"])
        self.reward_rate = snapshot["reward_rate"]
        self.period_finish = snapshot["period_finish"]
        self.last_update_time = snapshot["last_update_time"]
        self.reward_per_token_stored = snapshot["reward_per_token_stored"]
        self.user_reward_per_token_paid = dict(snapshot["user_reward_per_token_paid"])
        self.rewards = dict(snapshot["rewards"])

    def _update_reward(self, account: str | None) -> None:
        self.reward_per_token_stored = self.reward_per_token()
        self.last_update_time = self.last_time_reward_applicable()
        if account is not None:
            self.rewards[account] = self.earned(account)
            self.user_reward_per_token_paid[account] = self.reward_per_token_stored
