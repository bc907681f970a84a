"""
ERC20 token used as the vault's transfer primitive.

Models the pooled asset and both reward tokens:
- Basic token operations (transfer, approve, transferFrom)
- Owner-only minting along an emission schedule
- Minter-only out-of-schedule minting, tracked in ``minter_minted``
- Burning
- Transfer/Approval events

Security features:
- uint256 range checks on every amount
- Zero address checks
- Balance and allowance underflow prevention
- Snapshot/restore so a ledger can roll back failed operations
"""

from __future__ import annotations

import copy
import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..vault_exceptions import TokenError

if TYPE_CHECKING:
    from ..ledger import Ledger

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


def is_null_address(address: str | None) -> bool:
    """True for empty or all-zero addresses."""
    return not address or address.lower() == ZERO_ADDRESS


def derive_address(*parts: object) -> str:
    """Derive a pseudo contract address from arbitrary seed parts."""
    seed = ":".join(str(p) for p in parts).encode()
    return f"0x{hashlib.sha3_256(seed).digest()[-20:].hex()}"


@dataclass
class TokenEvent:
    """Represents an ERC20 event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    """
    ERC20 token with emission-aware minting.

    ``mint`` is the scheduled emission path (called by the reward pool);
    ``minter_mint`` is the out-of-schedule path whose running total is
    excluded from emission-curve accounting.
    """

    # Token metadata
    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    # Contract address
    address: str = ""

    # Owner (scheduled mint permission)
    owner: str = ""

    # Out-of-schedule minter
    minter: str = ""

    # State
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    # Total minted outside the emission schedule
    minter_minted: int = 0

    # Event log
    events: list[TokenEvent] = field(default_factory=list)

    # Supply cap (0 = unlimited)
    max_supply: int = 0

    ledger: "Ledger | None" = field(default=None, repr=False, compare=False)

    # Constants
    UINT256_MAX: int = 2**256 - 1

    def __post_init__(self) -> None:
        if not self.address:
            self.address = derive_address("erc20", self.name, self.symbol)
        self.address = self._normalize(self.address)
        self.owner = self._normalize(self.owner)
        self.minter = self._normalize(self.minter)
        if self.ledger is not None:
            self.ledger.register(self)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(self._normalize(owner), {}).get(self._normalize(spender), 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If the transfer fails
        """
        sender_norm = self._normalize(sender)
        recipient_norm = self._normalize(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise TokenError(
                f"{self.symbol}: transfer amount exceeds balance ({amount} > {sender_balance})",
                details={"token": self.address, "from": sender_norm},
            )

        self.balances[sender_norm] = sender_balance - amount
        self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount
        self._emit_transfer(sender_norm, recipient_norm, amount)

        logger.debug(
            "Token transfer",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)

        self._validate_address(spender_norm, "spender")
        self._validate_amount(amount)

        self.allowances.setdefault(owner_norm, {})[spender_norm] = amount
        self.events.append(TokenEvent("Approval", owner_norm, spender_norm, amount))
        return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """
        Transfer tokens using an allowance.

        Args:
            spender: Address executing transfer (msg.sender)
            from_addr: Token owner
            to_addr: Recipient
            amount: Amount to transfer

        Raises:
            TokenError: On insufficient allowance or balance
        """
        spender_norm = self._normalize(spender)
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)

        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        current_allowance = self.allowance(from_norm, spender_norm)
        if current_allowance < amount:
            raise TokenError(
                f"{self.symbol}: insufficient allowance ({current_allowance} < {amount})",
                details={"token": self.address, "owner": from_norm, "spender": spender_norm},
            )

        from_balance = self.balances.get(from_norm, 0)
        if from_balance < amount:
            raise TokenError(
                f"{self.symbol}: transfer amount exceeds balance ({amount} > {from_balance})",
                details={"token": self.address, "from": from_norm},
            )

        if current_allowance != self.UINT256_MAX:
            self.allowances[from_norm][spender_norm] = current_allowance - amount

        self.balances[from_norm] = from_balance - amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        self._emit_transfer(from_norm, to_norm, amount)
        return True

    # ==================== Minting & Burning ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """Mint scheduled emissions (owner only)."""
        self._require_owner(minter)
        self._mint(to, amount)
        return True

    def minter_mint(self, minter: str, to: str, amount: int) -> bool:
        """Mint outside the emission schedule (minter only); tracked separately."""
        if not self.minter or self._normalize(minter) != self.minter:
            raise TokenError(f"{self.symbol}: caller is not minter")
        self._mint(to, amount)
        self.minter_minted += amount

        logger.info(
            "Out-of-schedule mint",
            extra={
                "event": "erc20.minter_mint",
                "token": self.symbol,
                "to": self._normalize(to)[:10],
                "amount": amount,
                "minter_minted": self.minter_minted,
            }
        )
        return True

    def burn(self, holder: str, amount: int) -> bool:
        holder_norm = self._normalize(holder)
        self._validate_amount(amount)

        balance = self.balances.get(holder_norm, 0)
        if balance < amount:
            raise TokenError(f"{self.symbol}: burn amount exceeds balance ({amount} > {balance})")

        self.balances[holder_norm] = balance - amount
        self.total_supply -= amount
        self._emit_transfer(holder_norm, ZERO_ADDRESS, amount)
        return True

    def _mint(self, to: str, amount: int) -> None:
        to_norm = self._normalize(to)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        new_supply = self.total_supply + amount
        if new_supply > self.UINT256_MAX:
            raise TokenError(f"{self.symbol}: total supply overflow")
        if self.max_supply > 0 and new_supply > self.max_supply:
            raise TokenError(
                f"{self.symbol}: mint would exceed max supply ({new_supply} > {self.max_supply})"
            )

        self.total_supply = new_supply
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        self._emit_transfer(ZERO_ADDRESS, to_norm, amount)

    def transfer_ownership(self, caller: str, new_owner: str) -> bool:
        """Hand scheduled mint permission to a new owner (owner only)."""
        self._require_owner(caller)
        self._validate_address(self._normalize(new_owner), "new owner")
        self.owner = self._normalize(new_owner)
        return True

    # ==================== Ledger ====================

    def snapshot(self) -> dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "allowances": copy.deepcopy(self.allowances),
            "minter_minted": self.minter_minted,
            "events": list(self.events),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.total_supply = snapshot["total_supply"]
        self.balances = dict(snapshot["balances"])
        self.allowances = copy.deepcopy(snapshot["allowances"])
        self.minter_minted = snapshot["minter_minted"]
        self.events = list(snapshot["events"])

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return address.lower()

    def _validate_address(self, address: str, field_name: str) -> None:
        if is_null_address(address):
            raise TokenError(f"{self.symbol}: {field_name} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TokenError(f"{self.symbol}: amount must be an integer")
        if amount < 0:
            raise TokenError(f"{self.symbol}: amount cannot be negative")
        if amount > self.UINT256_MAX:
            raise TokenError(f"{self.symbol}: amount exceeds uint256")

    def _require_owner(self, caller: str) -> None:
        if not self.owner or self._normalize(caller) != self.owner:
            raise TokenError(f"{self.symbol}: caller is not owner")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(TokenEvent("Transfer", from_addr, to_addr, amount))
