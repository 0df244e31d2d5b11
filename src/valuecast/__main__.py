import json
import logging
import sys

import click

from valuecast.config import Settings
from valuecast.logging_config import setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Valuecast - Financial Scenario Simulation Engine"""
    settings = Settings()
    setup_logging(settings.log_dir, "DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


@cli.command()
@click.argument("request_file", type=click.File("r"), default="-")
@click.option("--seed", type=int, default=None, help="Seed the random source for a reproducible run")
@click.option("--quiet", "-q", is_flag=True, help="Do not print progress updates")
@click.option("--indent", type=int, default=2, help="JSON indent for the response")
@click.pass_obj
def run(settings: Settings, request_file, seed: int | None, quiet: bool, indent: int):
    """Run one calculation request ({id, type, params}) from a JSON file or stdin."""
    from valuecast.worker.dispatcher import TaskDispatcher

    try:
        request = json.load(request_file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="REQUEST_FILE")

    if seed is not None:
        settings = settings.model_copy(update={"random_seed": seed})
    dispatcher = TaskDispatcher(settings)

    def show_progress(message: dict):
        if not quiet:
            click.echo(f"  progress: {message['progress']:5.1f}%", err=True)

    response = dispatcher.handle(request, emit=show_progress)
    click.echo(json.dumps(response, indent=indent))
    if "error" in response:
        sys.exit(1)


@cli.command("price-option")
@click.option("--spot", "-s", type=float, required=True, help="Spot price")
@click.option("--strike", "-k", type=float, required=True, help="Strike price")
@click.option("--expiry", "-t", type=float, required=True, help="Time to expiry in years")
@click.option("--vol", type=float, required=True, help="Annualised volatility, e.g. 0.2")
@click.option("--rate", "-r", type=float, default=0.0, help="Risk-free rate, e.g. 0.05")
@click.option("--dividend", "-q", type=float, default=0.0, help="Continuous dividend yield")
def price_option_cmd(spot: float, strike: float, expiry: float, vol: float, rate: float, dividend: float):
    """Black-Scholes price and Greeks for a European call and put."""
    from valuecast.analysis.options import price_option
    from valuecast.errors import ValidationError

    try:
        result = price_option(spot, strike, expiry, vol, rate, dividend)
    except ValidationError as e:
        raise click.UsageError(str(e))

    click.echo(f"Moneyness (S/K): {result['moneyness']:.4f}")
    click.echo(f"{'':8}{'price':>10}{'delta':>10}{'gamma':>10}{'theta':>10}{'vega':>10}{'rho':>10}")
    for leg in ("call", "put"):
        g = result[leg]
        click.echo(
            f"{leg:8}{g['price']:>10.4f}{g['delta']:>10.4f}{g['gamma']:>10.4f}"
            f"{g['theta']:>10.4f}{g['vega']:>10.4f}{g['rho']:>10.4f}"
        )


@cli.command("task-types")
def task_types():
    """List the calculation types the dispatcher accepts."""
    from valuecast.worker.messages import TaskType

    for task_type in TaskType:
        click.echo(task_type.value)


if __name__ == "__main__":
    cli()
