"""
cvault - Yield-Compounding Vault

An in-process model of a vault that stakes a pooled asset in an external
reward pool and compounds two reward token streams back into that asset.

Main Components:
- Vault: share accounting, claim cycle and incentive configuration
- Emission curve: decaying secondary reward schedule
- Incentives: locker / caller / compound split of claimed rewards
- Ledger: serialized, all-or-nothing execution of every operation
- CLI: emission and split calculators and scenario simulation
"""

__version__ = "0.1.0"

__all__ = []
