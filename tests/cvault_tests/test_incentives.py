"""
Tests for the locker / caller / compound split of claimed rewards.
"""
import pytest

from cvault.core.defi.incentives import IncentiveSplitter, asset_value, compute_split, locker_cut
from cvault.core.defi.vault_config import VaultConfig
from cvault.core.vault_exceptions import InvalidAmountError, PrecisionError

CONFIG = VaultConfig(claimer_incentive_bps=500, locker_incentive_bps=1000, locker_rewards="0xlocker")


class TestComputeSplit:

    def test_reference_claim_split(self):
        """Amounts [1000, 0] at prices 2/1: value 2000, compound 100, locker 100, caller 900."""
        split = compute_split([1000, 0], [2, 3], 1, CONFIG)

        assert split.asset_value == 2000
        assert split.amount_to_compound == 100
        assert split.locker_cuts == (100, 0)
        assert split.caller_cuts == (900, 0)
        assert split.total_locker_cut == 100

    def test_cuts_add_up_to_claimed_amount(self):
        split = compute_split([12_345, 678], [7, 11], 3, CONFIG)
        for amount, locker, caller in zip(split.amounts, split.locker_cuts, split.caller_cuts):
            assert locker + caller == amount

    def test_single_stream(self):
        split = compute_split([10**18], [2 * 10**18], 10**18, CONFIG)
        assert split.asset_value == 2 * 10**18
        assert split.amount_to_compound == 10**17
        assert len(split.locker_cuts) == 1

    def test_truncation(self):
        # 999 * 1000 / 10000 = 99.9 -> 99
        assert locker_cut(999, 1000) == 99
        # (1 * 1 + 1 * 1) / 3 = 0.66 -> 0
        assert asset_value([1, 1], [1, 1], 3) == 0

    def test_zero_rates_compound_and_lock_nothing(self):
        split = compute_split([1000, 500], [2, 3], 1, VaultConfig(locker_rewards="0xlocker"))
        assert split.amount_to_compound == 0
        assert split.locker_cuts == (0, 0)
        assert split.caller_cuts == (1000, 500)

    @pytest.mark.parametrize("prices, asset_price", [([0, 3], 1), ([2, 0], 1), ([2, 3], 0), ([2, -1], 1)])
    def test_non_positive_price_is_precision_error(self, prices, asset_price):
        with pytest.raises(PrecisionError):
            compute_split([1000, 10], prices, asset_price, CONFIG)

    def test_mismatched_lengths(self):
        with pytest.raises(InvalidAmountError):
            compute_split([1, 2], [1], 1, CONFIG)

    def test_too_many_streams(self):
        with pytest.raises(InvalidAmountError):
            compute_split([1, 2, 3], [1, 1, 1], 1, CONFIG)

    def test_negative_amount(self):
        with pytest.raises(InvalidAmountError):
            compute_split([-1, 0], [1, 1], 1, CONFIG)

    def test_overflow_is_precision_error(self):
        with pytest.raises(PrecisionError):
            compute_split([2**255, 0], [4, 1], 1, CONFIG)


class TestIncentiveSplitter:

    class FixedOracle:
        def __init__(self, prices):
            self.prices = prices
            self.calls = []

        def price(self, token):
            self.calls.append(token)
            return self.prices[token]

    def test_split_uses_fresh_prices(self):
        oracle = self.FixedOracle({"crv": 2, "cvx": 3, "lp": 1})
        splitter = IncentiveSplitter(oracle)

        split = splitter.split([1000, 0], ["crv", "cvx"], "lp", CONFIG)

        assert split.amount_to_compound == 100
        assert oracle.calls == ["crv", "cvx", "lp"]

    def test_single_amount_only_prices_primary(self):
        oracle = self.FixedOracle({"crv": 2, "lp": 1})
        split = IncentiveSplitter(oracle).split([1000], ["crv", "cvx"], "lp", CONFIG)
        assert split.asset_value == 2000
        assert "cvx" not in oracle.calls
