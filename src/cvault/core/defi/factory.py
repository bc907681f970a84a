"""
Factory for deploying a complete in-process vault.

Builds the pooled asset, both reward tokens, the price feed, the reward
pool and the vault on one ledger from VaultSettings, and wires mint
permissions and roles the way a live deployment would.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import TokenSettings, VaultSettings
from ..contracts.access_control import Role, RoleBasedAccessControl
from ..contracts.erc20 import ERC20Token
from ..ledger import Ledger
from .compounding_vault import CompoundingVault
from .emission_curve import EmissionCurve
from .oracle import PriceFeed
from .reward_pool import BaseRewardPool
from .vault_config import IncentiveBounds

logger = logging.getLogger(__name__)


@dataclass
class VaultDeployment:
    """Handles to every contract of one deployment."""

    ledger: Ledger
    settings: VaultSettings
    asset: ERC20Token
    primary_reward: ERC20Token
    secondary_reward: ERC20Token | None
    feed: PriceFeed
    pool: BaseRewardPool
    rbac: RoleBasedAccessControl
    vault: CompoundingVault


class VaultFactory:
    """
    Deploys vaults onto a ledger.

    The admin owns the asset and primary reward tokens (so simulations can
    mint them), holds the initial secondary supply, and is granted
    VAULT_ADMIN on the new vault. Scheduled secondary minting is handed to
    the reward pool.
    """

    def __init__(self, ledger: Ledger | None = None) -> None:
        self.ledger = ledger or Ledger()
        self.deployments: dict[str, VaultDeployment] = {}

    def deploy(self, settings: VaultSettings) -> VaultDeployment:
        """
        Deploy a vault and its collaborators.

        Raises:
            ConfigurationError: If settings or the emission curve are invalid
        """
        curve = EmissionCurve(
            total_cliffs=settings.emission.total_cliffs,
            reduction_per_cliff=settings.emission.reduction_per_cliff,
            initial_mint_amount=settings.emission.initial_mint_amount,
            max_emission_supply=settings.emission.max_emission_supply,
        )

        asset = self._token(settings.asset, settings.admin)
        primary = self._token(settings.primary_reward, settings.admin)
        secondary = None
        if settings.secondary_reward is not None:
            secondary = self._token(settings.secondary_reward, settings.admin)
            secondary.minter = settings.admin.lower()
            if curve.initial_mint_amount > 0:
                secondary.mint(settings.admin, settings.admin, curve.initial_mint_amount)

        feed = PriceFeed(
            owner=settings.feeder,
            ledger=self.ledger,
            max_staleness=settings.oracle_max_staleness,
        )
        pool = BaseRewardPool(
            staking_token=asset,
            reward_token=primary,
            secondary_token=secondary,
            emission_curve=curve,
            operator=settings.operator,
            ledger=self.ledger,
            duration=settings.reward_duration,
        )
        if secondary is not None:
            secondary.transfer_ownership(settings.admin, pool.address)

        rbac = RoleBasedAccessControl(admin_address=settings.admin)
        rbac.grant_role(settings.admin, Role.VAULT_ADMIN.value, settings.admin)
        rbac.grant_role(settings.admin, Role.REWARD_OPERATOR.value, settings.operator)
        rbac.grant_role(settings.admin, Role.PRICE_FEEDER.value, settings.feeder)

        vault = CompoundingVault(
            name=settings.name,
            symbol=settings.symbol,
            asset=asset,
            pool=pool,
            oracle=feed,
            primary_token=primary,
            secondary_token=secondary,
            bounds=IncentiveBounds(
                max_claimer_incentive_bps=settings.max_claimer_incentive_bps,
                max_locker_incentive_bps=settings.max_locker_incentive_bps,
            ),
            rbac=rbac,
            ledger=self.ledger,
            emission_curve=curve,
        )

        deployment = VaultDeployment(
            ledger=self.ledger,
            settings=settings,
            asset=asset,
            primary_reward=primary,
            secondary_reward=secondary,
            feed=feed,
            pool=pool,
            rbac=rbac,
            vault=vault,
        )
        self.deployments[vault.address] = deployment

        logger.info(
            "Vault deployment created",
            extra={
                "event": "factory.deployed",
                "vault": vault.address[:10],
                "asset_symbol": asset.symbol,
                "primary_symbol": primary.symbol,
                "secondary_symbol": secondary.symbol if secondary else None,
            }
        )
        return deployment

    def _token(self, token: TokenSettings, owner: str) -> ERC20Token:
        return ERC20Token(
            name=token.name,
            symbol=token.symbol,
            decimals=token.decimals,
            address=token.address,
            owner=owner,
            ledger=self.ledger,
        )
