"""Command-line interface for the 1-D PIC engine.

Usage:
    pic1d run config.json --iterations=1000
    pic1d verify config.json
    pic1d dispersion --solver=psatd --mode=16
"""

from __future__ import annotations

import logging
import sys

import click
import numpy as np

from pic1d.config import SOLVER_KINDS
from pic1d.core.field_manager import COMPONENTS


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """pic1d: 1-D electromagnetic particle-in-cell engine."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--iterations", "-n", type=int, required=True, help="Number of iterations to run.")
@click.option(
    "--solver",
    type=click.Choice(SOLVER_KINDS, case_sensitive=False),
    default=None,
    help="Field solver. Overrides config file setting.",
)
@click.option(
    "--record",
    type=click.Choice(COMPONENTS),
    default=None,
    help="Record one field component every iteration.",
)
@click.option(
    "--output", "-o", type=click.Path(), default=None, help="Save the recorded series (.npy)."
)
def run(
    config_file: str,
    iterations: int,
    solver: str | None,
    record: str | None,
    output: str | None,
) -> None:
    """Run a simulation from a configuration file."""
    from pic1d.config import SimulationConfig
    from pic1d.engine import SimulationEngine

    click.echo(f"Loading config from {config_file}")
    config = SimulationConfig.from_file(config_file)
    if solver:
        config = config.model_copy(update={"solver": solver.lower()})

    engine = SimulationEngine(config)
    click.echo(f"Solver: {engine.solver_kind.value}")

    series = engine.run(iterations, record=record)

    if series is not None and output:
        np.save(output, series)
        click.echo(f"Saved {record} series {series.shape} to {output}")

    click.echo("\n--- Simulation Summary ---")
    click.echo(f"  iterations: {engine.iteration}")
    click.echo(f"  time: {engine.time:.6e}")
    click.echo(f"  field_energy: {engine.field_energy():.6e}")
    for name, energy in engine.kinetic_energy().items():
        sp = engine.get_species(name)
        click.echo(f"  {name}: particles={sp.n_particles}, kinetic_energy={energy:.6e}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def verify(config_file: str) -> None:
    """Verify a configuration file is valid."""
    from pydantic import ValidationError

    from pic1d.config import SimulationConfig

    try:
        config = SimulationConfig.from_file(config_file)
    except (ValidationError, ValueError) as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    click.echo("Configuration is valid:")
    click.echo(f"  Grid: nx={config.nx}, box={config.box}, dx={config.dx:.4e}")
    click.echo(f"  dt: {config.dt:.4e}")
    click.echo(f"  Solver: {config.solver}")
    click.echo(f"  Boundary: {config.boundary}")
    for sp in config.species:
        click.echo(f"  Species {sp.name}: m_q={sp.m_q}, ppc={sp.ppc}, density={sp.density.type}")


@cli.command()
@click.option(
    "--solver",
    type=click.Choice(SOLVER_KINDS, case_sensitive=False),
    default="psatd",
    help="Field solver to check.",
)
@click.option("--mode", type=int, default=4, help="Mode number of the seeded wave.")
@click.option("--iterations", "-n", type=int, default=400, help="Number of iterations to run.")
def dispersion(solver: str, mode: int, iterations: int) -> None:
    """Compare a solver's transverse-wave frequency with sqrt(1 + k^2)."""
    from pic1d.verification import run_dispersion_check

    result = run_dispersion_check(solver.lower(), mode, n_iterations=iterations)
    click.echo(f"Solver: {result.kind}, mode {result.mode}, k={result.k:.4f}")
    click.echo(f"  omega (measured): {result.omega_measured:.6f}")
    click.echo(f"  omega (analytic): {result.omega_analytic:.6f}")
    click.echo(f"  omega (vacuum):   {result.omega_vacuum:.6f}")
    click.echo(f"  relative error:   {result.relative_error:.3e}")


if __name__ == "__main__":
    cli()
