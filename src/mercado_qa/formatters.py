"""CLI output formatting helpers."""

from typing import Any

import click

from .config import MercadoQAConfig
from .scenario import Scenario


def scenario_to_dict(scenario: Scenario) -> dict[str, Any]:
    """Describe a scenario's declared steps (no request is made)."""
    return {
        "name": scenario.name,
        "description": scenario.description,
        "bindings": scenario.bindings,
        "steps": [
            {
                "name": step.name,
                "phase": step.phase.value,
                "method": step.method,
                "path": step.path,
                "expected_status": step.expected_status,
                "requires": list(step.required_bindings),
                "captures": dict(step.extract),
            }
            for step in scenario.steps
        ],
    }


def print_scenarios(scenarios: list[Scenario]) -> None:
    """Print the scenario catalogue.

    Args:
        scenarios: Built scenarios
    """
    for scenario in scenarios:
        click.echo(f"Scenario: {scenario.name} ({len(scenario.steps)} steps)")
        if scenario.description:
            click.echo(f"  {scenario.description}")
        for i, step in enumerate(scenario.steps, 1):
            phase = f" [{step.phase.value}]" if step.phase.value != "test" else ""
            click.echo(f"  {i:>2}. {step.name}{phase}")
            click.echo(f"      {step.method} {step.path} -> {step.expected_status}")
            if step.extract:
                captures = ", ".join(f"{k} <- {v}" for k, v in step.extract.items())
                click.echo(f"      captures: {captures}")
        click.echo()


def print_config(config: MercadoQAConfig) -> None:
    """Print configuration values with their sources.

    Args:
        config: Loaded configuration
    """
    click.echo("mercado-qa Configuration:\n")
    for key, value in config.values().items():
        click.echo(f"  {key}: {value}  ({config.get_source(key)})")
