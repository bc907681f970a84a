"""
Tests for the atomic claim cycle.

Covers:
- The full claim path (pull, split, slippage, payment, compound, distribute)
- Slippage aborts with zero transfers
- Rollback on oracle and pool failures
- Reentrancy through a hostile reward token
"""
import pytest

from cvault.core.contracts.access_control import Role, RoleBasedAccessControl
from cvault.core.contracts.erc20 import ERC20Token
from cvault.core.defi.claim_orchestrator import ClaimOrchestrator, ClaimRequest, ClaimState
from cvault.core.defi.compounding_vault import CompoundingVault
from cvault.core.defi.emission_curve import EmissionCurve
from cvault.core.defi.incentives import IncentiveSplitter, compute_split
from cvault.core.defi.oracle import PriceFeed
from cvault.core.defi.reward_pool import BaseRewardPool
from cvault.core.defi.vault_config import IncentiveBounds, VaultConfig
from cvault.core.ledger import Ledger
from cvault.core.vault_exceptions import (
    ExternalCallFailure,
    InvalidAmountError,
    OracleError,
    PrecisionError,
    ReentrancyError,
    SlippageError,
)
from vault_helpers import (
    ADMIN,
    ALICE,
    ASSET_ADDRESS,
    FEEDER,
    KEEPER,
    LOCKER,
    OPERATOR,
    PRIMARY_ADDRESS,
    START_TIME,
    advance,
    fund,
    queue_rewards,
)

DAY = 24 * 3600


def balances(deployment, *accounts):
    tokens = [deployment.asset, deployment.primary_reward, deployment.secondary_reward]
    return {
        (token.symbol, account): token.balance_of(account)
        for token in tokens
        for account in accounts
    }


class TestReferenceClaim:
    """Claimer 5%, locker 10%, amounts [1000, 0], asset price 1, primary price 2."""

    @pytest.fixture
    def funded(self, deployment, configured_vault):
        deployment.primary_reward.mint(ADMIN, configured_vault.address, 1000)
        fund(deployment, KEEPER, 100)
        return deployment

    def test_claim_pays_in_100_and_splits_900_100(self, funded):
        vault = funded.vault

        paid = vault.claim(KEEPER, [1000, 0], max_asset_amount_in=100)

        assert paid == 100
        assert funded.asset.balance_of(KEEPER) == 0
        assert funded.pool.balance_of(vault.address) == 100
        assert funded.primary_reward.balance_of(KEEPER) == 900
        assert funded.primary_reward.balance_of(LOCKER) == 100
        assert funded.primary_reward.balance_of(vault.address) == 0

    def test_receipt_and_event(self, funded):
        vault = funded.vault
        vault.claim(KEEPER, [1000, 0], max_asset_amount_in=100)

        receipt = vault.last_claim
        assert receipt.state is ClaimState.SUCCEEDED
        assert receipt.steps == [
            ClaimState.PULL_REWARDS,
            ClaimState.COMPUTE_SPLIT,
            ClaimState.SLIPPAGE_CHECK,
            ClaimState.COLLECT_PAYMENT,
            ClaimState.COMPOUND,
            ClaimState.DISTRIBUTE,
            ClaimState.EMIT,
        ]
        assert receipt.config_version == 1
        assert receipt.to_dict()["amount_paid_in"] == 100

        claimed = [event for event in vault.events if event.event_type == "Claimed"]
        assert len(claimed) == 1
        assert claimed[0].data["compounded_amount"] == 100

    def test_slippage_aborts_with_zero_transfers(self, funded):
        vault = funded.vault
        accounts = (KEEPER, LOCKER, vault.address, funded.pool.address)
        before = balances(funded, *accounts)
        events_before = len(vault.events)

        with pytest.raises(SlippageError) as exc_info:
            vault.claim(KEEPER, [1000, 0], max_asset_amount_in=99)

        assert exc_info.value.required == 100
        assert exc_info.value.maximum == 99
        assert exc_info.value.recoverable
        assert exc_info.value.details["step"] == ClaimState.SLIPPAGE_CHECK.value
        assert balances(funded, *accounts) == before
        assert len(vault.events) == events_before
        assert vault.orchestrator.state is ClaimState.ABORTED

    def test_claim_more_than_held_rolls_back(self, funded):
        vault = funded.vault
        before = balances(funded, KEEPER, LOCKER, vault.address)

        with pytest.raises(ExternalCallFailure):
            vault.claim(KEEPER, [2000, 0], max_asset_amount_in=10**6)

        assert balances(funded, KEEPER, LOCKER, vault.address) == before
        assert funded.pool.balance_of(vault.address) == 0

    def test_vault_can_claim_again_after_abort(self, funded):
        vault = funded.vault
        with pytest.raises(SlippageError):
            vault.claim(KEEPER, [1000, 0], max_asset_amount_in=0)

        assert vault.claim(KEEPER, [1000, 0], max_asset_amount_in=100) == 100

    @pytest.mark.parametrize("amounts", [[], [1, 2, 3], [None, 0], [-1, 0]])
    def test_malformed_amounts(self, funded, amounts):
        with pytest.raises(InvalidAmountError):
            funded.vault.claim(KEEPER, amounts, max_asset_amount_in=100)


class TestStreamedClaim:

    @pytest.fixture
    def accrued(self, deployment, configured_vault):
        fund(deployment, ALICE, 1_000 * 10**18)
        configured_vault.deposit(ALICE, 1_000 * 10**18, ALICE)
        queue_rewards(deployment, 7_000 * 10**18)
        advance(deployment, DAY)
        return deployment

    def test_claim_compounds_preview_amount(self, accrued):
        vault = accrued.vault
        pending = vault.pending_rewards()
        expected = compute_split(pending, [2, 3], 1, vault.vault_config)
        preview = vault.preview_reward()
        assert preview == expected.amount_to_compound
        assert vault.total_assets() == 1_000 * 10**18 + preview

        fund(accrued, KEEPER, preview)
        paid = vault.claim(KEEPER, [pending[0], None], max_asset_amount_in=preview)

        assert paid == preview
        assert vault.last_claim.secondary_amount == pending[1]
        assert accrued.pool.balance_of(vault.address) == 1_000 * 10**18 + preview
        assert accrued.primary_reward.balance_of(KEEPER) == expected.caller_cuts[0]
        assert accrued.primary_reward.balance_of(LOCKER) == expected.locker_cuts[0]
        assert accrued.secondary_reward.balance_of(KEEPER) == expected.caller_cuts[1]
        assert accrued.secondary_reward.balance_of(LOCKER) == expected.locker_cuts[1]

    def test_claim_raises_share_price(self, accrued):
        vault = accrued.vault
        preview = vault.preview_reward()
        fund(accrued, KEEPER, preview)

        vault.claim(KEEPER, vault.pending_rewards(), max_asset_amount_in=preview)

        assert vault.pending_rewards() == [0, 0]
        assert vault.convert_to_assets(10**18) > 10**18

    def test_zero_price_aborts_and_restores_pool_rewards(self, accrued):
        vault = accrued.vault
        earned = accrued.pool.earned(vault.address)
        accrued.feed.update_price(FEEDER, accrued.primary_reward.address, 0)
        fund(accrued, KEEPER, 10**24)

        with pytest.raises(PrecisionError):
            vault.claim(KEEPER, [earned, None], max_asset_amount_in=10**24)

        assert accrued.pool.earned(vault.address) == earned
        assert accrued.primary_reward.balance_of(vault.address) == 0
        assert accrued.asset.balance_of(KEEPER) == 10**24

    def test_stale_price_aborts(self, accrued):
        vault = accrued.vault
        accrued.ledger.advance(2 * 3600)
        fund(accrued, KEEPER, 10**24)

        with pytest.raises(OracleError):
            vault.claim(KEEPER, [1, 0], max_asset_amount_in=10**24)

    def test_preview_and_claim_share_the_splitter(self, accrued):
        vault = accrued.vault
        recorder = RecordingSplitter(accrued.feed)
        vault.orchestrator.splitter = recorder

        preview = vault.preview_reward()
        fund(accrued, KEEPER, preview)
        paid = vault.claim(KEEPER, vault.pending_rewards(), max_asset_amount_in=preview)

        expected_tokens = [accrued.primary_reward.address, accrued.secondary_reward.address]
        assert [call[1] for call in recorder.calls[:2]] == [expected_tokens, expected_tokens]
        assert all(call[2] == accrued.asset.address for call in recorder.calls)
        assert recorder.calls[0][3] == preview
        assert paid == preview

    def test_vault_binds_splitter_to_its_oracle(self, accrued):
        splitter = accrued.vault.orchestrator.splitter
        assert isinstance(splitter, IncentiveSplitter)
        assert splitter.oracle is accrued.feed


class RecordingSplitter(IncentiveSplitter):
    """Splitter that records each bundle it prices."""

    def __init__(self, oracle):
        super().__init__(oracle)
        self.calls = []

    def split(self, amounts, reward_tokens, asset_token, config):
        result = super().split(amounts, reward_tokens, asset_token, config)
        self.calls.append((list(amounts), list(reward_tokens), asset_token, result.amount_to_compound))
        return result


class HostileToken(ERC20Token):
    """Reward token that calls back into the vault on its next transfer."""

    reenter = None

    def transfer(self, sender, recipient, amount):
        if self.reenter is not None:
            hook, self.reenter = self.reenter, None
            hook()
        return super().transfer(sender, recipient, amount)


class TestReentrancy:

    @pytest.fixture
    def hostile(self):
        ledger = Ledger(timestamp=START_TIME)
        asset = ERC20Token(name="LP Token", symbol="LP", address=ASSET_ADDRESS, owner=ADMIN, ledger=ledger)
        primary = HostileToken(name="Primary", symbol="CRV", address=PRIMARY_ADDRESS, owner=ADMIN, ledger=ledger)
        pool = BaseRewardPool(staking_token=asset, reward_token=primary, ledger=ledger, operator=OPERATOR)
        feed = PriceFeed(owner=FEEDER, ledger=ledger)
        feed.update_price(FEEDER, asset.address, 1)
        feed.update_price(FEEDER, primary.address, 2)
        rbac = RoleBasedAccessControl(admin_address=ADMIN)
        rbac.grant_role(ADMIN, Role.VAULT_ADMIN.value, ADMIN)

        vault = CompoundingVault(
            name="Hostile Vault",
            symbol="hvLP",
            asset=asset,
            pool=pool,
            oracle=feed,
            primary_token=primary,
            secondary_token=None,
            bounds=IncentiveBounds(1_000, 2_000),
            rbac=rbac,
            ledger=ledger,
        )
        vault.set_config(ADMIN, 500, 1000, LOCKER)
        primary.mint(ADMIN, vault.address, 1000)
        asset.mint(ADMIN, KEEPER, 100)
        asset.approve(KEEPER, vault.address, 100)
        return vault, asset, primary, pool

    def test_reentrant_claim_aborts_outer_claim(self, hostile):
        vault, asset, primary, pool = hostile
        primary.reenter = lambda: vault.claim(KEEPER, [0], max_asset_amount_in=0)
        before = (dict(asset.balances), dict(primary.balances), dict(pool.balances), len(vault.events))

        with pytest.raises(ReentrancyError):
            vault.claim(KEEPER, [1000], max_asset_amount_in=100)

        after = (dict(asset.balances), dict(primary.balances), dict(pool.balances), len(vault.events))
        assert after == before
        assert vault.last_claim is None

        # Lock released after the abort.
        assert vault.claim(KEEPER, [1000], max_asset_amount_in=100) == 100

    def test_reentrant_deposit_is_rejected(self, hostile):
        vault, asset, primary, pool = hostile
        primary.reenter = lambda: vault.deposit(KEEPER, 1, KEEPER)

        with pytest.raises(ReentrancyError):
            vault.claim(KEEPER, [1000], max_asset_amount_in=100)
        assert vault.total_supply == 0


class BrokenPool:
    address = "0xbrokenpool"

    def deposit(self, caller, amount, on_behalf_of):
        return amount

    def withdraw(self, caller, amount, claim_extras=False):
        return True

    def balance_of(self, account):
        return 0

    def get_reward(self, account):
        raise RuntimeError("pool paused")

    def earned(self, account):
        return 0


class TestOrchestratorWithSubstitutes:

    def test_foreign_failure_is_wrapped(self):
        ledger = Ledger(timestamp=START_TIME)
        asset = ERC20Token(name="LP Token", symbol="LP", address=ASSET_ADDRESS, ledger=ledger)
        primary = ERC20Token(name="Primary", symbol="CRV", address=PRIMARY_ADDRESS, ledger=ledger)
        orchestrator = ClaimOrchestrator(
            vault_address="0xVault",
            ledger=ledger,
            pool=BrokenPool(),
            oracle=PriceFeed(owner=FEEDER, ledger=ledger),
            asset=asset,
            primary_token=primary,
            secondary_token=None,
            emission_curve=EmissionCurve(),
            config_reader=lambda: VaultConfig(500, 1000, LOCKER, 1),
        )

        with pytest.raises(ExternalCallFailure) as exc_info:
            orchestrator.execute(ClaimRequest(KEEPER, 10, None, 0))

        assert exc_info.value.details["step"] == ClaimState.PULL_REWARDS.value
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert orchestrator.state is ClaimState.ABORTED
        assert ledger.aborted == 1

    def test_secondary_amount_without_secondary_token(self):
        ledger = Ledger(timestamp=START_TIME)
        asset = ERC20Token(name="LP Token", symbol="LP", address=ASSET_ADDRESS, ledger=ledger)
        primary = ERC20Token(name="Primary", symbol="CRV", address=PRIMARY_ADDRESS, ledger=ledger)
        orchestrator = ClaimOrchestrator(
            vault_address="0xVault",
            ledger=ledger,
            pool=BaseRewardPool(staking_token=asset, reward_token=primary, ledger=ledger, operator=OPERATOR),
            oracle=PriceFeed(owner=FEEDER, ledger=ledger),
            asset=asset,
            primary_token=primary,
            secondary_token=None,
            emission_curve=EmissionCurve(),
            config_reader=lambda: VaultConfig(500, 1000, LOCKER, 1),
        )

        with pytest.raises(InvalidAmountError):
            orchestrator.execute(ClaimRequest(KEEPER, 0, 5, 0))
