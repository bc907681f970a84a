"""
Yield-compounding vault.

Holds the pooled asset staked in an external reward pool and issues
proportional shares against it. Anyone may claim the accrued reward
tokens by paying in pooled asset at the configured claimer rate; the
payment is restaked, so every claim raises the assets backing each share.

Security features:
- Every public mutation is one ledger unit of work (all-or-nothing)
- Reentrancy lock across claim, deposit, mint, withdraw and redeem
- Incentive rates bounded by immutable maxima
- Reward token identities validated at construction
- Role check on configuration changes
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, Sequence

from ..contracts.access_control import Role, RoleBasedAccessControl, requires_role
from ..contracts.erc20 import derive_address, is_null_address
from ..vault_exceptions import ConfigurationError, InvalidAmountError, ReentrancyError
from .. import metrics
from .claim_orchestrator import ClaimOrchestrator, ClaimReceipt, ClaimRequest, TokenLike
from .emission_curve import EmissionCurve
from .incentives import IncentiveSplitter
from .oracle import PriceOracle
from .reward_pool import RewardPool
from .safe_math import MAX_UINT256, SafeMath
from .share_accounting import Rounding, ShareAccounting
from .vault_config import IncentiveBounds, VaultConfig, VaultConfigStore

if TYPE_CHECKING:
    from ..ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class VaultEvent:
    """Represents a vault event."""

    event_type: str  # "Deposit", "Withdraw", "Claimed" or "VaultConfigSet"
    data: dict[str, Any]
    timestamp: float = field(default_factory=time.time)


@dataclass
class CompoundingVault:
    """
    Compounding vault over one pooled asset and one reward pool.

    Example usage:
        vault = CompoundingVault(
            name="Compounding Vault", symbol="cvLP",
            asset=asset, pool=pool, oracle=feed,
            primary_token=primary, secondary_token=secondary,
            bounds=IncentiveBounds(1_000, 2_000),
            rbac=RoleBasedAccessControl(admin_address="0xadmin"),
            ledger=ledger,
        )
        vault.deposit("0xalice", 100 * 10**18, "0xalice")
        vault.claim("0xkeeper", [earned, None], max_asset_amount_in=10**18)
    """

    name: str
    symbol: str
    asset: TokenLike
    pool: RewardPool
    oracle: PriceOracle
    primary_token: TokenLike
    secondary_token: TokenLike | None
    bounds: IncentiveBounds
    rbac: RoleBasedAccessControl
    ledger: "Ledger"
    emission_curve: EmissionCurve = field(default_factory=EmissionCurve)
    address: str = ""
    shares: ShareAccounting = field(default_factory=ShareAccounting)
    events: list[VaultEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._validate_token_identities()
        if not self.address:
            self.address = derive_address("vault", self.name, self.asset.address, self.pool.address)
        self.address = self.address.lower()

        self.config_store = VaultConfigStore(self.bounds)
        self.last_claim: ClaimReceipt | None = None
        self._locked = False

        for participant in (self.asset, self.primary_token, self.secondary_token, self.pool, self.rbac, self):
            if participant is not None and hasattr(participant, "snapshot"):
                self.ledger.register(participant)

        # Standing approval so the pool can pull the asset on deposit.
        self.asset.approve(self.address, self.pool.address, MAX_UINT256)

        self.orchestrator = ClaimOrchestrator(
            vault_address=self.address,
            ledger=self.ledger,
            pool=self.pool,
            oracle=self.oracle,
            splitter=IncentiveSplitter(self.oracle),
            asset=self.asset,
            primary_token=self.primary_token,
            secondary_token=self.secondary_token,
            emission_curve=self.emission_curve,
            config_reader=lambda: self.config_store.current,
            on_claimed=self._emit_claimed,
        )

        logger.info(
            "Vault deployed",
            extra={
                "event": "vault.deployed",
                "vault": self.address[:10],
                "asset": self.asset.address[:10],
                "pool": self.pool.address[:10],
                "max_claimer_incentive_bps": self.bounds.max_claimer_incentive_bps,
                "max_locker_incentive_bps": self.bounds.max_locker_incentive_bps,
            }
        )

    # ==================== Configuration ====================

    @property
    def vault_config(self) -> VaultConfig:
        return self.config_store.current

    @requires_role(Role.VAULT_ADMIN)
    def set_config(
        self,
        caller: str,
        claimer_incentive_bps: int,
        locker_incentive_bps: int,
        locker_rewards: str,
    ) -> bool:
        """
        Replace the incentive configuration (vault admin only).

        Raises:
            AuthorizationError: If caller lacks VAULT_ADMIN
            ConfigurationError: If a rate exceeds its bound or the address is null
        """
        with self.ledger.atomic("set_config"):
            config = self.config_store.replace(claimer_incentive_bps, locker_incentive_bps, locker_rewards)
            self._emit("VaultConfigSet", {"caller": caller.lower(), **config.to_dict()})

        metrics.record_config_update()
        return True

    # ==================== Claiming ====================

    def claim(self, caller: str, amounts: Sequence[int | None], max_asset_amount_in: int) -> int:
        """
        Claim accrued rewards for the caller in exchange for pooled asset.

        Args:
            caller: Claimer (pays in asset, receives reward tokens)
            amounts: [primary] or [primary, secondary]; a None secondary is
                derived from the emission curve
            max_asset_amount_in: Most pooled asset the caller will pay

        Returns:
            Pooled asset paid in and compounded
        """
        request = ClaimRequest.from_amounts(caller, amounts, max_asset_amount_in)
        with self.ledger.atomic("claim"), self._nonreentrant("claim"):
            receipt = self.orchestrator.execute(request)
        self.last_claim = receipt
        self._publish_total_assets()
        return receipt.amount_paid_in

    def pending_rewards(self) -> list[int]:
        """Reward tokens held plus earnable right now, per stream."""
        earned = self.pool.earned(self.address)
        amounts = [earned + self.primary_token.balance_of(self.address)]
        if self.secondary_token is not None:
            minted = self.emission_curve.mintable(
                earned,
                self.secondary_token.total_supply,
                self.secondary_token.minter_minted,
            )
            amounts.append(minted + self.secondary_token.balance_of(self.address))
        return amounts

    def preview_reward(self) -> int:
        """Pooled asset a claim of all pending rewards would compound now."""
        config = self.config_store.current
        if config.claimer_incentive_bps == 0:
            return 0
        amounts = self.pending_rewards()
        if not any(amounts):
            return 0
        split = self.orchestrator.preview_split(amounts, config)
        return split.amount_to_compound

    # ==================== Accounting Views ====================

    def total_assets(self) -> int:
        """Staked asset plus the asset value of pending rewards."""
        return self.pool.balance_of(self.address) + self.preview_reward()

    @property
    def total_supply(self) -> int:
        return self.shares.total_supply

    def balance_of(self, account: str) -> int:
        return self.shares.balance_of(account)

    def convert_to_shares(self, assets: int) -> int:
        return self.shares.convert_to_shares(assets, self.total_assets())

    def convert_to_assets(self, shares: int) -> int:
        return self.shares.convert_to_assets(shares, self.total_assets())

    def preview_deposit(self, assets: int) -> int:
        return self.shares.convert_to_shares(assets, self.total_assets(), Rounding.DOWN)

    def preview_mint(self, shares: int) -> int:
        return self.shares.convert_to_assets(shares, self.total_assets(), Rounding.UP)

    def preview_withdraw(self, assets: int) -> int:
        return self.shares.convert_to_shares(assets, self.total_assets(), Rounding.UP)

    def preview_redeem(self, shares: int) -> int:
        return self.shares.convert_to_assets(shares, self.total_assets(), Rounding.DOWN)

    def max_withdraw(self, owner: str) -> int:
        # Only staked asset is withdrawable; pending rewards need a claim first.
        return min(self.convert_to_assets(self.balance_of(owner)), self.pool.balance_of(self.address))

    def max_redeem(self, owner: str) -> int:
        return min(self.balance_of(owner), self.convert_to_shares(self.pool.balance_of(self.address)))

    # ==================== Share Operations ====================

    def approve(self, owner: str, spender: str, shares: int) -> bool:
        with self.ledger.atomic("approve"):
            self.shares.approve(owner, spender, shares)
        return True

    def deposit(self, caller: str, assets: int, receiver: str) -> int:
        """Deposit assets, stake them and mint shares to receiver."""
        self._require_positive(assets, "assets")
        with self.ledger.atomic("deposit"), self._nonreentrant("deposit"):
            shares = self.preview_deposit(assets)
            if shares == 0:
                raise InvalidAmountError("Deposit too small to mint shares")
            self._deposit(caller, receiver, assets, shares)
        self._publish_total_assets()
        return shares

    def mint(self, caller: str, shares: int, receiver: str) -> int:
        """Mint exactly ``shares`` to receiver, pulling the required assets."""
        self._require_positive(shares, "shares")
        with self.ledger.atomic("mint"), self._nonreentrant("mint"):
            assets = self.preview_mint(shares)
            self._deposit(caller, receiver, assets, shares)
        self._publish_total_assets()
        return assets

    def withdraw(self, caller: str, assets: int, receiver: str, owner: str) -> int:
        """Burn owner's shares to send exactly ``assets`` to receiver."""
        self._require_positive(assets, "assets")
        with self.ledger.atomic("withdraw"), self._nonreentrant("withdraw"):
            shares = self.preview_withdraw(assets)
            self._withdraw(caller, receiver, owner, assets, shares)
        self._publish_total_assets()
        return shares

    def redeem(self, caller: str, shares: int, receiver: str, owner: str) -> int:
        """Burn exactly ``shares`` of owner and send the assets to receiver."""
        self._require_positive(shares, "shares")
        with self.ledger.atomic("redeem"), self._nonreentrant("redeem"):
            assets = self.preview_redeem(shares)
            if assets == 0:
                raise InvalidAmountError("Redeem too small to return assets")
            self._withdraw(caller, receiver, owner, assets, shares)
        self._publish_total_assets()
        return assets

    def _deposit(self, caller: str, receiver: str, assets: int, shares: int) -> None:
        if is_null_address(receiver):
            raise InvalidAmountError("Receiver cannot be the zero address")
        self.asset.transfer_from(self.address, caller, self.address, assets)
        self.pool.deposit(self.address, assets, self.address)
        self.shares.mint(receiver, shares)
        self._emit("Deposit", {
            "caller": caller.lower(),
            "owner": receiver.lower(),
            "assets": assets,
            "shares": shares,
        })

    def _withdraw(self, caller: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        self.shares.spend_allowance(owner, caller, shares)
        self.shares.burn(owner, shares)
        self.pool.withdraw(self.address, assets, False)
        self.asset.transfer(self.address, receiver, assets)
        self._emit("Withdraw", {
            "caller": caller.lower(),
            "receiver": receiver.lower(),
            "owner": owner.lower(),
            "assets": assets,
            "shares": shares,
        })

    # ==================== Ledger ====================

    def snapshot(self) -> dict[str, Any]:
        return {
            "shares": self.shares.snapshot(),
            "config": self.config_store.snapshot(),
            "events": list(self.events),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.shares.restore(snapshot["shares"])
        self.config_store.restore(snapshot["config"])
        self.events = list(snapshot["events"])

    # ==================== Helpers ====================

    @contextmanager
    def _nonreentrant(self, operation: str) -> Iterator[None]:
        if self._locked:
            raise ReentrancyError(f"Vault is locked; cannot {operation}")
        self._locked = True
        try:
            yield
        finally:
            self._locked = False

    def _publish_total_assets(self) -> None:
        metrics.update_total_assets(self.address, self.total_assets())

    def _validate_token_identities(self) -> None:
        identities = [("asset", self.asset), ("primary reward", self.primary_token)]
        if self.secondary_token is not None:
            identities.append(("secondary reward", self.secondary_token))

        seen: dict[str, str] = {}
        for label, token in identities:
            if is_null_address(token.address):
                raise ConfigurationError(f"{label} token address cannot be the zero address")
            address = token.address.lower()
            if address in seen:
                raise ConfigurationError(f"{label} token duplicates the {seen[address]} token")
            seen[address] = label

    def _require_positive(self, value: int, name: str) -> None:
        if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
            raise InvalidAmountError(f"{name} must be greater than 0")
        SafeMath.require_uint(value, name)

    def _emit_claimed(self, receipt: ClaimReceipt) -> None:
        self._emit("Claimed", {
            "caller": receipt.caller,
            "primary_amount": receipt.primary_amount,
            "secondary_amount": receipt.secondary_amount,
            "compounded_amount": receipt.amount_paid_in,
        })

    def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        self.events.append(VaultEvent(event_type=event_type, data=data))
        logger.debug(
            "Vault event",
            extra={"event": f"vault.{event_type.lower()}", "vault": self.address[:10], **{
                key: value for key, value in data.items() if isinstance(value, int)
            }}
        )
