"""
Proportional share bookkeeping for the vault (ERC-4626 rules).

Shares are converted with a one-unit virtual offset on both sides so an
empty vault starts at 1:1 and donations cannot inflate the first
depositor's share price:

    shares = assets * (total_supply + 1) / (total_assets + 1)
    assets = shares * (total_assets + 1) / (total_supply + 1)

Deposit and redeem previews round down, mint and withdraw previews round
up, always in the vault's favour.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..vault_exceptions import InvalidAmountError
from .safe_math import SafeMath


class Rounding(Enum):
    DOWN = "down"
    UP = "up"


@dataclass
class ShareAccounting:
    """Share balances, allowances and share/asset conversion."""

    total_supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    def convert_to_shares(self, assets: int, total_assets: int, rounding: Rounding = Rounding.DOWN) -> int:
        return SafeMath.mul_div(
            assets,
            self.total_supply + 1,
            total_assets + 1,
            round_up=rounding is Rounding.UP,
            name="convert_to_shares",
        )

    def convert_to_assets(self, shares: int, total_assets: int, rounding: Rounding = Rounding.DOWN) -> int:
        return SafeMath.mul_div(
            shares,
            total_assets + 1,
            self.total_supply + 1,
            round_up=rounding is Rounding.UP,
            name="convert_to_assets",
        )

    def balance_of(self, account: str) -> int:
        return self.balances.get(account.lower(), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner.lower(), {}).get(spender.lower(), 0)

    def approve(self, owner: str, spender: str, shares: int) -> None:
        SafeMath.require_uint(shares, "shares")
        self.allowances.setdefault(owner.lower(), {})[spender.lower()] = shares

    def spend_allowance(self, owner: str, spender: str, shares: int) -> None:
        """Consume allowance unless the spender is the owner."""
        if owner.lower() == spender.lower():
            return
        current = self.allowance(owner, spender)
        if current < shares:
            raise InvalidAmountError(
                f"Insufficient share allowance ({current} < {shares})",
                details={"owner": owner.lower(), "spender": spender.lower()},
            )
        self.allowances[owner.lower()][spender.lower()] = current - shares

    def mint(self, to: str, shares: int) -> None:
        self.total_supply = SafeMath.safe_add(self.total_supply, shares, name="share_supply")
        self.balances[to.lower()] = self.balance_of(to) + shares

    def burn(self, owner: str, shares: int) -> None:
        balance = self.balance_of(owner)
        if shares > balance:
            raise InvalidAmountError(
                f"Burn amount exceeds share balance ({shares} > {balance})",
                details={"owner": owner.lower()},
            )
        self.balances[owner.lower()] = balance - shares
        self.total_supply -= shares

    def snapshot(self) -> dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "allowances": copy.deepcopy(self.allowances),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.total_supply = snapshot["total_supply"]
        self.balances = dict(snapshot["balances"])
        self.allowances = copy.deepcopy(snapshot["allowances"])
