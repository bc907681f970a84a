"""
Vault instrumentation.

Prometheus metrics for claims, compounding, locker payouts and
configuration changes, with helpers that are safe to call from the claim
path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

claims_counter = Counter(
    "cvault_claims_total", "Claim attempts by outcome", ["outcome"]
)

compounded_assets_counter = Counter(
    "cvault_compounded_assets_total", "Pooled asset base units compounded by claims"
)

locker_payout_counter = Counter(
    "cvault_locker_payout_total", "Reward token base units paid to the locker", ["token"]
)

caller_payout_counter = Counter(
    "cvault_caller_payout_total", "Reward token base units paid to claim callers", ["token"]
)

config_updates_counter = Counter(
    "cvault_config_updates_total", "Accepted vault configuration replacements"
)

total_assets_gauge = Gauge(
    "cvault_total_assets", "Pooled asset backing all vault shares", ["vault"]
)


def record_claim_outcome(outcome: str) -> None:
    claims_counter.labels(outcome=outcome).inc()


def record_claim_payouts(
    compounded: int,
    tokens: list[str],
    locker_cuts: tuple[int, ...],
    caller_cuts: tuple[int, ...],
) -> None:
    """Count the amounts moved by a successful claim."""
    if compounded > 0:
        compounded_assets_counter.inc(compounded)
    for token, locker, caller in zip(tokens, locker_cuts, caller_cuts):
        if locker > 0:
            locker_payout_counter.labels(token=token).inc(locker)
        if caller > 0:
            caller_payout_counter.labels(token=token).inc(caller)


def record_config_update() -> None:
    config_updates_counter.inc()


def update_total_assets(vault_address: str, total_assets: int) -> None:
    total_assets_gauge.labels(vault=vault_address).set(total_assets)
