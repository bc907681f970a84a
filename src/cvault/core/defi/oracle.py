"""
USD price feed consumed by the vault.

The vault only needs ``price(token) -> int``. PriceFeed is an in-memory
Chainlink-style feed: one latest round per token, updated by the feed
owner, and rejected once it is older than ``max_staleness`` seconds on the
ledger clock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from ..vault_exceptions import AuthorizationError, OracleError
from .safe_math import SafeMath

if TYPE_CHECKING:
    from ..ledger import Ledger

logger = logging.getLogger(__name__)

DEFAULT_MAX_STALENESS = 3600


class PriceOracle(Protocol):
    """Interface that price sources must implement."""

    def price(self, token: str) -> int:
        """USD price of one token unit; raises if unsupported or stale."""
        ...


@dataclass(frozen=True)
class PriceRound:
    """Latest answer for one token."""

    price: int
    updated_at: int
    round_id: int


@dataclass
class PriceFeed:
    """
    In-memory USD price feed with staleness checks.

    Example usage:
        feed = PriceFeed(owner="0xfeeder", ledger=ledger)
        feed.update_price("0xfeeder", asset.address, 10**18)
        feed.price(asset.address)
    """

    owner: str
    ledger: "Ledger"
    max_staleness: int = DEFAULT_MAX_STALENESS
    rounds: dict[str, PriceRound] = field(default_factory=dict)

    def update_price(self, caller: str, token: str, price: int) -> PriceRound:
        """
        Publish a new price for token (owner only).

        Zero is accepted here; consumers that divide by it must reject it.
        """
        if caller.lower() != self.owner.lower():
            raise AuthorizationError(f"PriceFeed: caller {caller[:10]} is not the feeder")
        SafeMath.require_uint(price, "price")

        token_norm = token.lower()
        previous = self.rounds.get(token_norm)
        new_round = PriceRound(
            price=price,
            updated_at=self.ledger.timestamp,
            round_id=previous.round_id + 1 if previous else 1,
        )
        self.rounds[token_norm] = new_round

        logger.debug(
            "Price updated",
            extra={
                "event": "oracle.price_updated",
                "token": token_norm[:10],
                "price": price,
                "round_id": new_round.round_id,
            }
        )
        return new_round

    def latest_round(self, token: str) -> PriceRound:
        round_data = self.rounds.get(token.lower())
        if round_data is None:
            raise OracleError(f"PriceFeed: unsupported token {token[:10]}", details={"token": token})
        return round_data

    def price(self, token: str) -> int:
        """
        Latest fresh price for token.

        Raises:
            OracleError: If the token has no feed or the round is stale
        """
        round_data = self.latest_round(token)
        age = self.ledger.timestamp - round_data.updated_at
        if age > self.max_staleness:
            logger.warning(
                "Stale price rejected",
                extra={
                    "event": "oracle.stale_price",
                    "token": token.lower()[:10],
                    "age_seconds": age,
                    "max_staleness": self.max_staleness,
                }
            )
            raise OracleError(
                f"PriceFeed: stale price for {token[:10]} ({age}s > {self.max_staleness}s)",
                details={"token": token, "age": age},
            )
        return round_data.price
