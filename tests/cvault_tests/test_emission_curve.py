"""
Tests for the secondary reward emission curve.

Covers:
- Cliff and reduction arithmetic
- Clamping to the remaining emission supply
- Exhaustion past the last cliff or the max supply
- Exclusion of externally minted supply
"""
import pytest

from cvault.core.defi.emission_curve import EmissionCurve
from cvault.core.vault_exceptions import ConfigurationError, PrecisionError

INITIAL = 5 * 10**25
PER_CLIFF = 10**23


@pytest.fixture
def curve():
    return EmissionCurve(
        total_cliffs=500,
        reduction_per_cliff=PER_CLIFF,
        initial_mint_amount=INITIAL,
        max_emission_supply=5 * 10**25,
    )


class TestEmissionCurve:

    def test_hundredth_cliff_mints_at_reduction_1700(self, curve):
        """100 cliffs emitted: reduction 1700, so 1e19 primary mints 3.4e19."""
        supply = INITIAL + 100 * PER_CLIFF

        state = curve.state(supply)
        assert state.emissions_minted == 100 * PER_CLIFF
        assert state.cliff == 100
        assert curve.reduction(state.cliff) == 1700

        assert curve.mintable(10**19, supply) == 34 * 10**18

    def test_first_cliff_rate(self, curve):
        # (500 - 0) * 5 // 2 + 700 = 1950
        assert curve.reduction(0) == 1950
        assert curve.mintable(500, INITIAL) == 1950

    def test_reduction_truncates_before_dividing(self, curve):
        # (500 - 1) * 5 // 2 = 1247 (not 1247.5)
        assert curve.reduction(1) == 1947

    def test_exhausted_by_max_supply_mints_nothing(self, curve):
        supply = INITIAL + 5 * 10**25
        assert curve.state(supply).exhausted
        assert curve.mintable(10**24, supply) == 0

    def test_last_cliff_clamps_to_remaining(self, curve):
        supply = INITIAL + 5 * 10**25 - 10
        state = curve.state(supply)

        assert state.cliff == 499
        assert state.remaining == 10
        assert curve.mintable(10**19, supply) == 10

    def test_externally_minted_supply_does_not_advance_cliff(self, curve):
        supply = INITIAL + 100 * PER_CLIFF

        state = curve.state(supply, externally_minted=100 * PER_CLIFF)
        assert state.emissions_minted == 0
        assert state.cliff == 0
        assert curve.mintable(10**19, supply, externally_minted=100 * PER_CLIFF) == 39 * 10**18

    def test_zero_primary_mints_nothing(self, curve):
        assert curve.mintable(0, INITIAL) == 0

    def test_supply_below_initial_mint_is_an_error(self, curve):
        with pytest.raises(PrecisionError):
            curve.mintable(10**18, INITIAL - 1)

    def test_externally_minted_above_emissions_is_an_error(self, curve):
        with pytest.raises(PrecisionError):
            curve.state(INITIAL + 10, externally_minted=11)

    def test_cliff_count_exhaustion_with_large_max_supply(self):
        curve = EmissionCurve(
            total_cliffs=10,
            reduction_per_cliff=100,
            initial_mint_amount=0,
            max_emission_supply=10**30,
        )
        assert curve.state(1_000).exhausted
        assert curve.mintable(10**18, 1_000) == 0
        assert curve.mintable(10, 999) > 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"total_cliffs": 0},
            {"reduction_per_cliff": 0},
            {"initial_mint_amount": -1},
            {"max_emission_supply": -1},
        ],
    )
    def test_invalid_parameters_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            EmissionCurve(**kwargs)
