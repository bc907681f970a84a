"""
Tests for the reward-streaming staking pool.
"""
import pytest

from cvault.core.vault_exceptions import AuthorizationError, RewardPoolError
from vault_helpers import ADMIN, ALICE, BOB, OPERATOR, queue_rewards

DAY = 24 * 3600


def stake(deployment, account, amount):
    deployment.asset.mint(ADMIN, account, amount)
    deployment.asset.approve(account, deployment.pool.address, amount)
    deployment.pool.deposit(account, amount, account)


class TestBaseRewardPool:

    def test_rewards_stream_pro_rata(self, deployment):
        pool = deployment.pool
        stake(deployment, ALICE, 300 * 10**18)
        stake(deployment, BOB, 100 * 10**18)
        queue_rewards(deployment, 7_000 * 10**18)

        deployment.ledger.advance(DAY)

        alice, bob = pool.earned(ALICE), pool.earned(BOB)
        assert alice > 0
        assert abs(alice - 3 * bob) <= 3
        assert alice + bob <= 1_000 * 10**18

    def test_rewards_stop_at_period_finish(self, deployment):
        pool = deployment.pool
        stake(deployment, ALICE, 10**18)
        queue_rewards(deployment, 7_000 * 10**18)

        deployment.ledger.advance(pool.duration)
        at_finish = pool.earned(ALICE)
        deployment.ledger.advance(DAY)

        assert pool.earned(ALICE) == at_finish
        assert at_finish <= 7_000 * 10**18

    def test_get_reward_mints_secondary_on_curve(self, deployment):
        pool = deployment.pool
        secondary = deployment.secondary_reward
        stake(deployment, ALICE, 10**18)
        queue_rewards(deployment, 7_000 * 10**18)
        deployment.ledger.advance(DAY)

        earned = pool.earned(ALICE)
        expected = pool.emission_curve.mintable(earned, secondary.total_supply, secondary.minter_minted)
        pool.get_reward(ALICE)

        assert deployment.primary_reward.balance_of(ALICE) == earned
        assert secondary.balance_of(ALICE) == expected
        assert pool.earned(ALICE) == 0

    def test_out_of_schedule_mint_does_not_slow_emission(self, deployment):
        pool = deployment.pool
        secondary = deployment.secondary_reward
        before = pool.emission_curve.mintable(10**18, secondary.total_supply, secondary.minter_minted)

        secondary.minter_mint(ADMIN, BOB, 10**24)

        after = pool.emission_curve.mintable(10**18, secondary.total_supply, secondary.minter_minted)
        assert after == before

    def test_only_operator_queues(self, deployment):
        with pytest.raises(AuthorizationError):
            deployment.pool.queue_rewards(ALICE, 10)

    def test_withdraw_more_than_stake(self, deployment):
        stake(deployment, ALICE, 100)
        with pytest.raises(RewardPoolError):
            deployment.pool.withdraw(ALICE, 101)

    def test_withdraw_returns_asset(self, deployment):
        stake(deployment, ALICE, 100)
        deployment.pool.withdraw(ALICE, 40)

        assert deployment.asset.balance_of(ALICE) == 40
        assert deployment.pool.balance_of(ALICE) == 60
        assert deployment.pool.total_supply == 60

    def test_zero_deposit_rejected(self, deployment):
        with pytest.raises(RewardPoolError):
            deployment.pool.deposit(ALICE, 0, ALICE)

    def test_queue_pulls_rewards_from_operator(self, deployment):
        queue_rewards(deployment, 500)
        assert deployment.primary_reward.balance_of(deployment.pool.address) == 500
        assert deployment.primary_reward.balance_of(OPERATOR) == 0
