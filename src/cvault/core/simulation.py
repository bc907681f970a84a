"""
Scenario simulation for the compounding vault.

A scenario is a YAML document with three sections:

    vault:      VaultSettings (tokens, roles, bounds, emission curve)
    prices:     USD price per token symbol, republished after every clock step
    steps:      ordered actions (set_config, set_price, mint, deposit,
                queue_rewards, advance, claim, withdraw, redeem)

Each step runs as one ledger unit of work. A step that fails with a
VaultError is rolled back and recorded; the run stops there unless the
scenario sets ``stop_on_error: false``.

Accounts are plain names (``alice``, ``keeper``) or addresses. ``admin``,
``operator`` and ``feeder`` resolve to the configured role addresses, and
``vault`` / ``pool`` resolve to the deployed contracts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import VaultSettings, read_yaml
from .contracts.erc20 import ERC20Token
from .defi.factory import VaultDeployment, VaultFactory
from .defi.safe_math import parse_amount
from .ledger import Ledger
from .vault_exceptions import ConfigurationError, VaultError

logger = logging.getLogger(__name__)


@dataclass
class StepReport:
    """Outcome of one scenario step and the vault state after it."""

    index: int
    action: str
    ok: bool
    result: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    timestamp: int = 0
    total_assets: int = 0
    total_supply: int = 0
    staked: int = 0
    assets_per_share: int = 0
    pending_rewards: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action,
            "ok": self.ok,
            "result": self.result,
            "error": self.error,
            "error_type": self.error_type,
            "timestamp": self.timestamp,
            "total_assets": self.total_assets,
            "total_supply": self.total_supply,
            "staked": self.staked,
            "assets_per_share": self.assets_per_share,
            "pending_rewards": list(self.pending_rewards),
        }


@dataclass
class ScenarioReport:
    """Result of a full scenario run."""

    vault_name: str
    vault_address: str
    steps: List[StepReport] = field(default_factory=list)
    balances: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return all(step.ok for step in self.steps)

    @property
    def failed_steps(self) -> List[StepReport]:
        return [step for step in self.steps if not step.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vault_name": self.vault_name,
            "vault_address": self.vault_address,
            "succeeded": self.succeeded,
            "steps": [step.to_dict() for step in self.steps],
            "balances": self.balances,
        }


class ScenarioRunner:
    """
    Deploys a vault from a scenario mapping and replays its steps.

    Example usage:
        runner = ScenarioRunner.from_file(Path("scenario.yaml"))
        report = runner.run()
        print(report.steps[-1].total_assets)
    """

    def __init__(self, scenario: Dict[str, Any], factory: Optional[VaultFactory] = None) -> None:
        if not isinstance(scenario, dict):
            raise ConfigurationError("Scenario must be a mapping")

        self.settings = VaultSettings.from_dict(scenario.get("vault", {}))
        self.stop_on_error = bool(scenario.get("stop_on_error", True))

        raw_steps = scenario.get("steps") or []
        if not isinstance(raw_steps, list):
            raise ConfigurationError("Scenario steps must be a list")
        self.raw_steps: List[Dict[str, Any]] = raw_steps

        start_time = scenario.get("start_time")
        self.factory = factory or VaultFactory(Ledger(timestamp=start_time))
        self.deployment: VaultDeployment = self.factory.deploy(self.settings)

        self.actions: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "set_config": self._set_config,
            "set_price": self._set_price,
            "mint": self._mint,
            "deposit": self._deposit,
            "queue_rewards": self._queue_rewards,
            "advance": self._advance,
            "claim": self._claim,
            "withdraw": self._withdraw,
            "redeem": self._redeem,
        }
        for index, step in enumerate(self.raw_steps):
            self._check_step(index, step)

        self.prices: Dict[str, int] = {}
        prices = scenario.get("prices") or {}
        if not isinstance(prices, dict):
            raise ConfigurationError("Scenario prices must map token symbols to prices")
        for symbol, price in prices.items():
            token = self._token(str(symbol))
            self.prices[token.symbol.upper()] = parse_amount(price, f"prices.{symbol}")
        self._publish_prices()

    @classmethod
    def from_file(cls, path: Path) -> "ScenarioRunner":
        return cls(read_yaml(path))

    @property
    def ledger(self) -> Ledger:
        return self.deployment.ledger

    def run(self) -> ScenarioReport:
        """Replay every step and return the per-step report."""
        vault = self.deployment.vault
        report = ScenarioReport(vault_name=vault.name, vault_address=vault.address)

        for index, step in enumerate(self.raw_steps):
            action = step["action"]
            try:
                with self.ledger.atomic(f"scenario.{action}"):
                    result = self.actions[action](step)
                step_report = StepReport(index=index, action=action, ok=True, result=result)
            except VaultError as exc:
                logger.warning(
                    "Scenario step failed",
                    extra={
                        "event": "simulation.step_failed",
                        "index": index,
                        "action": action,
                        "error": type(exc).__name__,
                    }
                )
                step_report = StepReport(
                    index=index,
                    action=action,
                    ok=False,
                    error=exc.message,
                    error_type=type(exc).__name__,
                )

            self._capture_state(step_report)
            report.steps.append(step_report)
            if not step_report.ok and self.stop_on_error:
                break

        report.balances = self._balances()
        logger.info(
            "Scenario finished",
            extra={
                "event": "simulation.finished",
                "steps": len(report.steps),
                "failed": len(report.failed_steps),
            }
        )
        return report

    # ==================== Actions ====================

    def _set_config(self, step: Dict[str, Any]) -> bool:
        return self.deployment.vault.set_config(
            self._account(step.get("caller", "admin")),
            int(step["claimer_bps"]),
            int(step["locker_bps"]),
            self._account(step["locker_rewards"]),
        )

    def _set_price(self, step: Dict[str, Any]) -> int:
        token = self._token(step["token"])
        price = parse_amount(step["price"], "price")
        self.prices[token.symbol.upper()] = price
        self.deployment.feed.update_price(self.settings.feeder, token.address, price)
        return price

    def _mint(self, step: Dict[str, Any]) -> int:
        token = self._token(step["token"])
        amount = parse_amount(step["amount"])
        to = self._account(step["to"])
        if token is self.deployment.secondary_reward:
            token.minter_mint(self.settings.admin, to, amount)
        else:
            token.mint(self.settings.admin, to, amount)
        return amount

    def _deposit(self, step: Dict[str, Any]) -> int:
        vault = self.deployment.vault
        account = self._account(step["account"])
        assets = parse_amount(step["assets"], "assets")
        self.deployment.asset.approve(account, vault.address, assets)
        return vault.deposit(account, assets, self._account(step.get("receiver", step["account"])))

    def _queue_rewards(self, step: Dict[str, Any]) -> int:
        operator = self.settings.operator
        amount = parse_amount(step["amount"])
        primary = self.deployment.primary_reward
        primary.mint(self.settings.admin, operator, amount)
        primary.approve(operator, self.deployment.pool.address, amount)
        duration = step.get("duration")
        self.deployment.pool.queue_rewards(operator, amount, int(duration) if duration else None)
        return amount

    def _advance(self, step: Dict[str, Any]) -> int:
        timestamp = self.ledger.advance(int(step["seconds"]))
        self._publish_prices()
        return timestamp

    def _claim(self, step: Dict[str, Any]) -> int:
        vault = self.deployment.vault
        account = self._account(step["account"])

        raw_amounts = step.get("amounts", "pending")
        if raw_amounts == "pending":
            amounts: List[Optional[int]] = list(vault.pending_rewards())
        else:
            amounts = [None if value is None else parse_amount(value) for value in raw_amounts]

        raw_max = step.get("max_in", "preview")
        max_in = vault.preview_reward() if raw_max == "preview" else parse_amount(raw_max, "max_in")
        self.deployment.asset.approve(account, vault.address, max_in)
        return vault.claim(account, amounts, max_in)

    def _withdraw(self, step: Dict[str, Any]) -> int:
        vault = self.deployment.vault
        owner = self._account(step["account"])
        assets = vault.max_withdraw(owner) if step["assets"] == "all" else parse_amount(step["assets"], "assets")
        receiver = self._account(step.get("receiver", step["account"]))
        return vault.withdraw(owner, assets, receiver, owner)

    def _redeem(self, step: Dict[str, Any]) -> int:
        vault = self.deployment.vault
        owner = self._account(step["account"])
        shares = vault.max_redeem(owner) if step["shares"] == "all" else parse_amount(step["shares"], "shares")
        receiver = self._account(step.get("receiver", step["account"]))
        return vault.redeem(owner, shares, receiver, owner)

    # ==================== Helpers ====================

    def _check_step(self, index: int, step: Any) -> None:
        if not isinstance(step, dict) or "action" not in step:
            raise ConfigurationError(f"Step {index} must be a mapping with an 'action'")
        if step["action"] not in self.actions:
            raise ConfigurationError(
                f"Step {index}: unknown action {step['action']!r}",
                details={"known_actions": sorted(self.actions)},
            )
        required = {
            "set_config": ("claimer_bps", "locker_bps", "locker_rewards"),
            "set_price": ("token", "price"),
            "mint": ("token", "to", "amount"),
            "deposit": ("account", "assets"),
            "queue_rewards": ("amount",),
            "advance": ("seconds",),
            "claim": ("account",),
            "withdraw": ("account", "assets"),
            "redeem": ("account", "shares"),
        }[step["action"]]
        missing = [key for key in required if key not in step]
        if missing:
            raise ConfigurationError(
                f"Step {index} ({step['action']}) missing: {', '.join(missing)}",
                details={"step": index},
            )

    def _publish_prices(self) -> None:
        for symbol, price in self.prices.items():
            self.deployment.feed.update_price(self.settings.feeder, self._token(symbol).address, price)

    def _tokens(self) -> List[ERC20Token]:
        tokens = [self.deployment.asset, self.deployment.primary_reward]
        if self.deployment.secondary_reward is not None:
            tokens.append(self.deployment.secondary_reward)
        return tokens

    def _token(self, symbol: str) -> ERC20Token:
        for token in self._tokens():
            if token.symbol.upper() == symbol.upper() or token.address == symbol.lower():
                return token
        raise ConfigurationError(f"Unknown token {symbol!r} in scenario")

    def _account(self, name: str) -> str:
        aliases = {
            "admin": self.settings.admin,
            "operator": self.settings.operator,
            "feeder": self.settings.feeder,
            "vault": self.deployment.vault.address,
            "pool": self.deployment.pool.address,
        }
        return aliases.get(str(name), str(name)).lower()

    def _capture_state(self, report: StepReport) -> None:
        vault = self.deployment.vault
        report.timestamp = self.ledger.timestamp
        report.total_assets = vault.total_assets()
        report.total_supply = vault.total_supply
        report.staked = self.deployment.pool.balance_of(vault.address)
        report.assets_per_share = vault.convert_to_assets(10 ** self.deployment.asset.decimals)
        report.pending_rewards = vault.pending_rewards()

    def _balances(self) -> Dict[str, Dict[str, int]]:
        balances: Dict[str, Dict[str, int]] = {}
        for token in self._tokens():
            for account, amount in token.balances.items():
                if amount > 0:
                    balances.setdefault(account, {})[token.symbol] = amount
        for account, shares in self.deployment.vault.shares.balances.items():
            if shares > 0:
                balances.setdefault(account, {})[self.deployment.vault.symbol] = shares
        return balances
