"""
Compounding vault accounting engine.

This module provides:
- EmissionCurve: Cliff-based secondary reward emission schedule
- Incentives: Locker / caller / compound split of claimed rewards
- VaultConfig: Bounded, versioned incentive configuration
- PriceFeed: USD price source with staleness checks
- BaseRewardPool: Reward-streaming staking pool
- ClaimOrchestrator: Atomic claim cycle
- CompoundingVault: Share accounting, claims and administration
- VaultFactory: Full in-process deployments
"""

from .claim_orchestrator import ClaimOrchestrator, ClaimReceipt, ClaimRequest, ClaimState
from .compounding_vault import CompoundingVault, VaultEvent
from .emission_curve import EmissionCurve, EmissionState
from .factory import VaultDeployment, VaultFactory
from .incentives import INCENTIVE_BASIS, IncentiveSplitter, RewardSplit, compute_split
from .oracle import PriceFeed, PriceOracle, PriceRound
from .reward_pool import BaseRewardPool, RewardPool
from .safe_math import SafeMath
from .share_accounting import Rounding, ShareAccounting
from .vault_config import IncentiveBounds, VaultConfig, VaultConfigStore

__all__ = [
    # Emission
    "EmissionCurve",
    "EmissionState",
    # Incentives
    "INCENTIVE_BASIS",
    "IncentiveSplitter",
    "RewardSplit",
    "compute_split",
    # Configuration
    "IncentiveBounds",
    "VaultConfig",
    "VaultConfigStore",
    # Collaborators
    "PriceFeed",
    "PriceOracle",
    "PriceRound",
    "BaseRewardPool",
    "RewardPool",
    # Vault
    "ClaimOrchestrator",
    "ClaimReceipt",
    "ClaimRequest",
    "ClaimState",
    "CompoundingVault",
    "VaultEvent",
    "Rounding",
    "ShareAccounting",
    "SafeMath",
    "VaultDeployment",
    "VaultFactory",
]
