"""CLI main entry point."""

import asyncio
import json
import sys
from datetime import datetime, timezone

import click

from .client import MercadoClient
from .config import SETTINGS, load_config, save_config, unset_config
from .data import make_faker
from .reporter import ConsoleReporter, JsonReporter, LogReporter, Reporter
from .scenario import ScenarioRunner
from .shared.logging import configure_logging
from .shared.paths import ensure_dirs, get_report_file
from .suites import SCENARIOS, build_scenarios

LOG_LEVELS = {0: "warning", 1: "info"}


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--base-url", help="API base URL (overrides config)")
@click.option("--timeout", type=float, help="Request timeout in seconds (overrides config)")
@click.option("-k", "--insecure", is_flag=True, help="Skip TLS certificate verification")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Write logs to this file")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: int,
    json_output: bool,
    base_url: str | None,
    timeout: float | None,
    insecure: bool,
    log_file: str | None,
    log_json: bool,
) -> None:
    """Black-box test runner for the mercado REST API."""
    ctx.ensure_object(dict)
    configure_logging(LOG_LEVELS.get(verbose, "debug"), log_file=log_file, json_output=log_json)

    config = load_config()
    config.override("base_url", base_url)
    config.override("timeout", timeout)

    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output or config.output_format == "json"
    ctx.obj["insecure"] = insecure


@cli.command()
@click.argument("names", nargs=-1, type=click.Choice(sorted(SCENARIOS)))
@click.option("--parallel", is_flag=True, help="Run scenario groups concurrently")
@click.option("--report", type=click.Path(dir_okay=False), help="Write a JSON report to this file")
@click.option("--save", is_flag=True, help="Save a JSON report under ~/.mercado-qa/reports")
@click.option("--seed", type=int, help="Seed fake data for a reproducible run")
@click.pass_context
def run(
    ctx: click.Context,
    names: tuple[str, ...],
    parallel: bool,
    report: str | None,
    save: bool,
    seed: int | None,
) -> None:
    """Run scenarios against the API (all of them when none is named).

    Exits with status 1 when any step fails.
    """
    config = ctx.obj["config"]
    json_output = ctx.obj["json_output"]

    fake = make_faker(config.faker_locale, seed)
    scenarios = build_scenarios(names, fake, missing_id=config.missing_id)

    reporters: list[Reporter] = [LogReporter()]
    if not json_output:
        reporters.append(ConsoleReporter())
    if report:
        reporters.append(JsonReporter(report))
    if save:
        ensure_dirs()
        run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        reporters.append(JsonReporter(get_report_file(run_id)))

    async def _run():
        async with MercadoClient(
            config.base_url,
            timeout=config.timeout,
            insecure=ctx.obj["insecure"],
        ) as client:
            runner = ScenarioRunner(client, reporters=reporters)
            return await runner.run_all(scenarios, parallel=parallel)

    if not json_output:
        click.echo(f"Target: {config.base_url} (timeout {config.timeout:g}s)")

    summary = asyncio.run(_run())

    if json_output:
        click.echo(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False, default=str))

    sys.exit(summary.exit_code)


@cli.command()
@click.argument("names", nargs=-1, type=click.Choice(sorted(SCENARIOS)))
@click.pass_context
def scenarios(ctx: click.Context, names: tuple[str, ...]) -> None:
    """List scenarios and their declared steps."""
    from .formatters import print_scenarios, scenario_to_dict

    config = ctx.obj["config"]
    built = build_scenarios(names, make_faker(config.faker_locale), missing_id=config.missing_id)

    if ctx.obj["json_output"]:
        click.echo(json.dumps([scenario_to_dict(s) for s in built], indent=2, ensure_ascii=False))
    else:
        print_scenarios(built)


@cli.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration and where each value comes from."""
    from .formatters import print_config

    loaded = ctx.obj["config"]
    if ctx.obj["json_output"]:
        data = {
            "values": loaded.values(),
            "sources": {key: loaded.get_source(key) for key in SETTINGS},
        }
        click.echo(json.dumps(data, indent=2))
    else:
        print_config(loaded)


@config.command("set")
@click.argument("key", type=click.Choice(sorted(SETTINGS)))
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value."""
    try:
        save_config(key, value)
    except ValueError:
        click.echo(f"Error: Invalid value for {key}: {value}", err=True)
        sys.exit(1)
    click.echo(f"Set {key} = {value}")


@config.command("unset")
@click.argument("key", type=click.Choice(sorted(SETTINGS)))
def config_unset(key: str) -> None:
    """Remove a persisted configuration value."""
    if unset_config(key):
        click.echo(f"Unset {key}")
    else:
        click.echo(f"{key} is not set in the config file")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
