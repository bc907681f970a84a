"""
One full reward claim cycle as a single atomic operation.

    PULL_REWARDS -> COMPUTE_SPLIT -> SLIPPAGE_CHECK -> COLLECT_PAYMENT
        -> COMPOUND -> DISTRIBUTE -> EMIT -> SUCCEEDED

Any failure moves the claim to ABORTED; the enclosing ledger unit of work
restores every token, the pool and the vault, so no partial transfer,
compounding or distribution survives. The pool, oracle and tokens are
injected so the sequence can run against substitutes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol, Sequence

from ..vault_exceptions import (
    ExternalCallFailure,
    InvalidAmountError,
    ReentrancyError,
    SlippageError,
    VaultError,
)
from .. import metrics
from .emission_curve import EmissionCurve
from .incentives import IncentiveSplitter, RewardSplit
from .oracle import PriceOracle
from .reward_pool import RewardPool
from .safe_math import SafeMath
from .vault_config import VaultConfig

if TYPE_CHECKING:
    from ..ledger import Ledger

logger = logging.getLogger(__name__)


class ClaimState(Enum):
    """Claim state machine positions."""
    PULL_REWARDS = "pull_rewards"
    COMPUTE_SPLIT = "compute_split"
    SLIPPAGE_CHECK = "slippage_check"
    COLLECT_PAYMENT = "collect_payment"
    COMPOUND = "compound"
    DISTRIBUTE = "distribute"
    EMIT = "emit"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"


class TokenLike(Protocol):
    """Token surface the claim cycle relies on."""

    address: str
    total_supply: int
    minter_minted: int

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        ...


@dataclass(frozen=True)
class ClaimRequest:
    """
    Transient claim input.

    ``secondary_amount=None`` asks the vault to derive the secondary amount
    from the emission curve.
    """

    caller: str
    primary_amount: int
    secondary_amount: int | None
    max_asset_amount_in: int

    @classmethod
    def from_amounts(
        cls, caller: str, amounts: Sequence[int | None], max_asset_amount_in: int
    ) -> "ClaimRequest":
        if not 1 <= len(amounts) <= 2:
            raise InvalidAmountError(f"Expected [primary] or [primary, secondary], got {len(amounts)} amounts")
        if amounts[0] is None:
            raise InvalidAmountError("Primary amount is required")
        secondary = amounts[1] if len(amounts) == 2 else None
        return cls(
            caller=caller,
            primary_amount=amounts[0],
            secondary_amount=secondary,
            max_asset_amount_in=max_asset_amount_in,
        )


@dataclass
class ClaimReceipt:
    """Outcome of a completed claim."""

    caller: str
    primary_amount: int
    secondary_amount: int
    split: RewardSplit
    config_version: int
    state: ClaimState = ClaimState.EMIT
    steps: list[ClaimState] = field(default_factory=list)

    @property
    def amount_paid_in(self) -> int:
        return self.split.amount_to_compound

    def to_dict(self) -> dict[str, Any]:
        return {
            "caller": self.caller,
            "primary_amount": self.primary_amount,
            "secondary_amount": self.secondary_amount,
            "amount_paid_in": self.amount_paid_in,
            "asset_value": self.split.asset_value,
            "locker_cuts": list(self.split.locker_cuts),
            "caller_cuts": list(self.split.caller_cuts),
            "config_version": self.config_version,
            "state": self.state.value,
        }


class ClaimOrchestrator:
    """Runs claim cycles for one vault against injected collaborators."""

    def __init__(
        self,
        *,
        vault_address: str,
        ledger: "Ledger",
        pool: RewardPool,
        oracle: PriceOracle,
        splitter: IncentiveSplitter | None = None,
        asset: TokenLike,
        primary_token: TokenLike,
        secondary_token: TokenLike | None,
        emission_curve: EmissionCurve,
        config_reader: Callable[[], VaultConfig],
        on_claimed: Callable[[ClaimReceipt], None] | None = None,
    ) -> None:
        self.vault_address = vault_address.lower()
        self.ledger = ledger
        self.pool = pool
        self.oracle = oracle
        self.splitter = splitter or IncentiveSplitter(oracle)
        self.asset = asset
        self.primary_token = primary_token
        self.secondary_token = secondary_token
        self.emission_curve = emission_curve
        self.config_reader = config_reader
        self.on_claimed = on_claimed
        self.state: ClaimState | None = None
        self._locked = False

    @property
    def reward_tokens(self) -> list[TokenLike]:
        tokens = [self.primary_token]
        if self.secondary_token is not None:
            tokens.append(self.secondary_token)
        return tokens

    def execute(self, request: ClaimRequest) -> ClaimReceipt:
        """
        Run one claim cycle.

        Args:
            request: Claim amounts and slippage ceiling

        Returns:
            Receipt of the committed claim

        Raises:
            ReentrancyError: If a claim is already running
            SlippageError: If the compound amount exceeds the ceiling
            PrecisionError: On invalid prices or overflow
            ExternalCallFailure: If the pool, oracle or a token fails
        """
        self._validate(request)
        steps: list[ClaimState] = []

        with self.ledger.atomic("claim"):
            # Only same-thread re-entry can see the flag set here.
            self._require_not_locked()
            self._locked = True
            try:
                receipt = self._run(request, steps)
            except Exception as exc:
                self.state = ClaimState.ABORTED
                metrics.record_claim_outcome(ClaimState.ABORTED.value)
                logger.warning(
                    "Claim aborted",
                    extra={
                        "event": "claim.aborted",
                        "vault": self.vault_address[:10],
                        "caller": request.caller.lower()[:10],
                        "step": steps[-1].value if steps else None,
                        "error": type(exc).__name__,
                    }
                )
                raise
            finally:
                self._locked = False

        receipt.state = ClaimState.SUCCEEDED
        self.state = ClaimState.SUCCEEDED
        metrics.record_claim_outcome(ClaimState.SUCCEEDED.value)
        metrics.record_claim_payouts(
            receipt.amount_paid_in,
            [token.address for token in self.reward_tokens],
            receipt.split.locker_cuts,
            receipt.split.caller_cuts,
        )
        logger.info(
            "Rewards claimed and compounded",
            extra={
                "event": "claim.succeeded",
                "vault": self.vault_address[:10],
                "caller": receipt.caller[:10],
                "primary": receipt.primary_amount,
                "secondary": receipt.secondary_amount,
                "compounded": receipt.amount_paid_in,
                "config_version": receipt.config_version,
            }
        )
        return receipt

    def preview_split(self, amounts: Sequence[int], config: VaultConfig) -> RewardSplit:
        """Split a reward bundle at live prices without touching state."""
        tokens = [token.address for token in self.reward_tokens]
        return self.splitter.split(amounts, tokens, self.asset.address, config)

    # ==================== Steps ====================

    def _run(self, request: ClaimRequest, steps: list[ClaimState]) -> ClaimReceipt:
        secondary = self.secondary_token
        supply_before = secondary.total_supply if secondary is not None else 0
        minted_before = secondary.minter_minted if secondary is not None else 0

        self._step(ClaimState.PULL_REWARDS, steps, self.pool.get_reward, self.vault_address)

        # Config is read once and used by value for the rest of the cycle.
        config = self.config_reader()
        split, secondary_amount = self._step(
            ClaimState.COMPUTE_SPLIT, steps, self._compute_split,
            request, config, supply_before, minted_before,
        )
        self._step(
            ClaimState.SLIPPAGE_CHECK, steps, self._check_slippage,
            split.amount_to_compound, request.max_asset_amount_in,
        )
        self._step(ClaimState.COLLECT_PAYMENT, steps, self._collect_payment, request.caller, split.amount_to_compound)
        self._step(ClaimState.COMPOUND, steps, self._compound, split.amount_to_compound)
        self._step(ClaimState.DISTRIBUTE, steps, self._distribute, request.caller, config, split)

        receipt = ClaimReceipt(
            caller=request.caller.lower(),
            primary_amount=request.primary_amount,
            secondary_amount=secondary_amount,
            split=split,
            config_version=config.version,
            steps=steps,
        )
        self._step(ClaimState.EMIT, steps, self._emit, receipt)
        return receipt

    def _step(self, state: ClaimState, steps: list[ClaimState], func: Callable, *args: Any) -> Any:
        self.state = state
        steps.append(state)
        try:
            return func(*args)
        except VaultError as exc:
            exc.details.setdefault("step", state.value)
            raise
        except Exception as exc:
            raise ExternalCallFailure(
                f"Claim step {state.value} failed: {exc}",
                details={"step": state.value},
            ) from exc

    def _compute_split(
        self,
        request: ClaimRequest,
        config: VaultConfig,
        supply_before: int,
        minted_before: int,
    ) -> tuple[RewardSplit, int]:
        amounts = [request.primary_amount]
        secondary_amount = request.secondary_amount or 0

        if self.secondary_token is not None:
            if request.secondary_amount is None:
                secondary_amount = self.emission_curve.mintable(
                    request.primary_amount, supply_before, minted_before
                )
            amounts.append(secondary_amount)
        elif secondary_amount:
            raise InvalidAmountError("Vault has no secondary reward token")

        return self.preview_split(amounts, config), secondary_amount

    def _check_slippage(self, amount_to_compound: int, max_asset_amount_in: int) -> None:
        if amount_to_compound > max_asset_amount_in:
            raise SlippageError(
                f"Slippage: compound amount {amount_to_compound} exceeds maximum {max_asset_amount_in}",
                required=amount_to_compound,
                maximum=max_asset_amount_in,
            )

    def _collect_payment(self, caller: str, amount: int) -> None:
        if amount > 0:
            self.asset.transfer_from(self.vault_address, caller, self.vault_address, amount)

    def _compound(self, amount: int) -> None:
        if amount > 0:
            self.pool.deposit(self.vault_address, amount, self.vault_address)

    def _distribute(self, caller: str, config: VaultConfig, split: RewardSplit) -> None:
        for token, locker, payout in zip(self.reward_tokens, split.locker_cuts, split.caller_cuts):
            if locker > 0:
                token.transfer(self.vault_address, config.locker_rewards, locker)
            if payout > 0:
                token.transfer(self.vault_address, caller, payout)

    def _emit(self, receipt: ClaimReceipt) -> None:
        if self.on_claimed is not None:
            self.on_claimed(receipt)

    # ==================== Helpers ====================

    def _validate(self, request: ClaimRequest) -> None:
        if not request.caller:
            raise InvalidAmountError("Claim caller is required")
        values = {
            "primary_amount": request.primary_amount,
            "max_asset_amount_in": request.max_asset_amount_in,
        }
        if request.secondary_amount is not None:
            values["secondary_amount"] = request.secondary_amount
        for name, value in values.items():
            if isinstance(value, int) and not isinstance(value, bool) and value < 0:
                raise InvalidAmountError(f"{name} cannot be negative")
            SafeMath.require_uint(value, name)

    def _require_not_locked(self) -> None:
        if self._locked:
            raise ReentrancyError("Claim already in progress")
