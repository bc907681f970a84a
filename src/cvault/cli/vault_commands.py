"""
Compounding vault CLI commands.

Provides offline calculators and a scenario simulator:
- emission: secondary reward minted for a primary claim
- split: locker / caller / compound split of a reward bundle
- simulate: replay a YAML scenario against an in-memory vault
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core import config
from ..core.defi.emission_curve import EmissionCurve
from ..core.defi.incentives import compute_split
from ..core.defi.safe_math import parse_amount
from ..core.defi.vault_config import INCENTIVE_BASIS, IncentiveBounds, VaultConfigStore
from ..core.simulation import ScenarioReport, ScenarioRunner
from ..core.vault_exceptions import VaultError

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


class AmountParamType(click.ParamType):
    """Integer token amount; accepts ``1e18``, ``1_000`` and hex."""

    name = "amount"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> int:
        try:
            return parse_amount(value, param.name if param else "amount")
        except VaultError as exc:
            self.fail(exc.message, param, ctx)


AMOUNT = AmountParamType()


def _emit_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


@click.command("emission")
@click.option("--primary", type=AMOUNT, required=True, help="Primary reward claimed (base units)")
@click.option("--supply", type=AMOUNT, required=True, help="Secondary token total supply (base units)")
@click.option("--externally-minted", type=AMOUNT, default=0, show_default=True,
              help="Secondary supply minted outside the emission schedule")
@click.option("--total-cliffs", type=int, default=config.EMISSION_TOTAL_CLIFFS, show_default=True)
@click.option("--reduction-per-cliff", type=AMOUNT, default=config.EMISSION_REDUCTION_PER_CLIFF, show_default=True)
@click.option("--initial-mint", type=AMOUNT, default=config.EMISSION_INITIAL_MINT_AMOUNT, show_default=True)
@click.option("--max-supply", type=AMOUNT, default=config.EMISSION_MAX_SUPPLY, show_default=True)
@click.pass_context
def emission(
    ctx: click.Context,
    primary: int,
    supply: int,
    externally_minted: int,
    total_cliffs: int,
    reduction_per_cliff: int,
    initial_mint: int,
    max_supply: int,
):
    """
    Evaluate the secondary reward emission curve.

    Example:
        cvault emission --primary 1e19 --supply 6e25
    """
    try:
        curve = EmissionCurve(
            total_cliffs=total_cliffs,
            reduction_per_cliff=reduction_per_cliff,
            initial_mint_amount=initial_mint,
            max_emission_supply=max_supply,
        )
        state = curve.state(supply, externally_minted)
        mintable = curve.mintable(primary, supply, externally_minted)
    except VaultError as exc:
        _handle_cli_error(exc)
        return

    payload = {
        "primary_amount": primary,
        "total_supply": supply,
        "externally_minted": externally_minted,
        "emissions_minted": state.emissions_minted,
        "cliff": state.cliff,
        "total_cliffs": state.total_cliffs,
        "reduction": curve.reduction(state.cliff) if not state.exhausted else 0,
        "exhausted": state.exhausted,
        "remaining": state.remaining,
        "mintable": mintable,
    }
    logger.debug("Emission evaluated: mintable=%d cliff=%d", mintable, state.cliff)

    if ctx.obj.get("json_output"):
        _emit_json(payload)
        return

    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Emissions minted", str(state.emissions_minted))
    table.add_row("[bold cyan]Cliff", f"{state.cliff} / {state.total_cliffs}")
    table.add_row("[bold cyan]Reduction", str(payload["reduction"]))
    table.add_row("[bold cyan]Remaining", str(state.remaining))
    table.add_row("[bold green]Mintable", str(mintable))
    title = "[bold yellow]Emission Exhausted" if state.exhausted else "[bold green]Emission Curve"
    console.print(Panel(table, title=title, border_style="cyan"))


@click.command("split")
@click.option("--amount", "amounts", type=AMOUNT, multiple=True, required=True,
              help="Reward amount per stream (repeat for the secondary stream)")
@click.option("--price", "prices", type=AMOUNT, multiple=True, required=True,
              help="USD price per stream, same order as --amount")
@click.option("--asset-price", type=AMOUNT, required=True, help="USD price of the pooled asset")
@click.option("--claimer-bps", type=int, required=True, help="Claimer incentive in basis points")
@click.option("--locker-bps", type=int, required=True, help="Locker incentive in basis points")
@click.pass_context
def split(
    ctx: click.Context,
    amounts: tuple[int, ...],
    prices: tuple[int, ...],
    asset_price: int,
    claimer_bps: int,
    locker_bps: int,
):
    """
    Split a reward bundle into locker cut, caller cut and compound amount.

    Example:
        cvault split --amount 1000 --amount 0 --price 2 --price 3 \\
            --asset-price 1 --claimer-bps 500 --locker-bps 1000
    """
    try:
        store = VaultConfigStore(IncentiveBounds(INCENTIVE_BASIS, INCENTIVE_BASIS))
        vault_config = store.replace(claimer_bps, locker_bps, "locker")
        result = compute_split(list(amounts), list(prices), asset_price, vault_config)
    except VaultError as exc:
        _handle_cli_error(exc)
        return

    payload = {
        "amounts": list(result.amounts),
        "locker_cuts": list(result.locker_cuts),
        "caller_cuts": list(result.caller_cuts),
        "asset_value": result.asset_value,
        "amount_to_compound": result.amount_to_compound,
    }

    if ctx.obj.get("json_output"):
        _emit_json(payload)
        return

    table = Table(title="Reward Split", box=box.SIMPLE)
    table.add_column("Stream", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Locker Cut", justify="right", style="magenta")
    table.add_column("Caller Cut", justify="right", style="green")
    for index, (amount, price, locker, caller) in enumerate(
        zip(result.amounts, prices, result.locker_cuts, result.caller_cuts)
    ):
        table.add_row("primary" if index == 0 else "secondary", str(amount), str(price), str(locker), str(caller))
    console.print(table)
    console.print(f"[bold cyan]Asset value:[/] {result.asset_value}")
    console.print(f"[bold green]Amount to compound:[/] {result.amount_to_compound}")


@click.command("simulate")
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def simulate(ctx: click.Context, scenario: Path):
    """
    Deploy an in-memory vault and replay a YAML scenario.

    Example:
        cvault simulate scenarios/compound.yaml
    """
    try:
        logger.info("Running scenario %s", scenario)
        runner = ScenarioRunner.from_file(scenario)
        report = runner.run()
    except VaultError as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        _emit_json(report.to_dict())
    else:
        _print_report(report)

    if not report.succeeded:
        sys.exit(1)


def _print_report(report: ScenarioReport) -> None:
    table = Table(title=f"{report.vault_name} ({report.vault_address[:10]}...)", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Action", style="cyan")
    table.add_column("Result")
    table.add_column("Total Assets", justify="right")
    table.add_column("Shares", justify="right")
    table.add_column("Assets/Share", justify="right", style="green")

    for step in report.steps:
        result = str(step.result) if step.ok else f"[red]{step.error_type}: {step.error}[/]"
        table.add_row(
            str(step.index),
            step.action,
            result,
            str(step.total_assets),
            str(step.total_supply),
            str(step.assets_per_share),
        )
    console.print(table)

    balances = Table(title="Final Balances", box=box.SIMPLE)
    balances.add_column("Account", style="cyan")
    balances.add_column("Holdings")
    for account, holdings in sorted(report.balances.items()):
        balances.add_row(account, ", ".join(f"{symbol}={amount}" for symbol, amount in sorted(holdings.items())))
    console.print(balances)

    if report.succeeded:
        console.print("[bold green]Scenario completed[/]")
    else:
        failed = report.failed_steps[0]
        console.print(f"[bold red]Scenario stopped at step {failed.index} ({failed.action})[/]")
