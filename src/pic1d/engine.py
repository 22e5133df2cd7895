"""Simulation engine for the 1-D PIC loop.

Wires together: config -> field state -> field solver -> species into a
timestep loop with a fixed ordering per iteration:

1. Zero the shared charge/current accumulators
2. Deposit current and charge from every species
3. Advance E and B by one timestep with the deposited current
4. Interpolate the new fields to the particles and push every species
5. Increment the iteration counter (time is always ``n * dt``)

Time stagger: fields live at integer times. At the start of iteration ``n``
the particles hold positions at ``n + 1`` and velocities at ``n + 1/2``,
so the deposited current is centred between the two field levels.
"""

from __future__ import annotations

import logging
import time as wall_time
from collections.abc import Sequence
from typing import Any

import numpy as np
from pydantic import ValidationError

from pic1d.config import SimulationConfig, SpeciesConfig
from pic1d.core.bases import FieldSolverBase, StepResult
from pic1d.core.field_manager import COMPONENTS, HALF_NODE_COMPONENTS, FieldState
from pic1d.errors import ConfigurationError
from pic1d.pic.species import Species
from pic1d.solvers import SolverKind, make_solver

logger = logging.getLogger(__name__)


class SimulationEngine:
    """1-D electromagnetic particle-in-cell simulation.

    Owns one :class:`FieldState`, one field solver and the list of
    :class:`Species`. Every species shares the grid geometry and timestep
    of the engine.

    Args:
        config: Validated :class:`SimulationConfig`, or a mapping that
            validates into one.

    Raises:
        ConfigurationError: If the configuration is invalid.
    """

    def __init__(self, config: SimulationConfig | dict[str, Any]) -> None:
        if not isinstance(config, SimulationConfig):
            try:
                config = SimulationConfig.model_validate(config)
            except ValidationError as exc:
                raise ConfigurationError(str(exc)) from exc
        self.config = config

        self.nx = config.nx
        self.box = config.box
        self.dx = config.dx
        self.dt = config.dt
        self.solver_kind = SolverKind(config.solver)
        self._iteration = 0

        self.fields = FieldState(self.nx, self.dx)
        self.solver: FieldSolverBase = make_solver(self.solver_kind, self.fields)
        self.rng = np.random.default_rng(config.seed)

        self.species: list[Species] = []
        for sp_cfg in config.species:
            sp = Species.from_config(
                sp_cfg, self.nx, self.box, self.dt,
                boundary=config.boundary, rng=self.rng,
            )
            sp.inject()
            self.species.append(sp)

        limit = self.solver.stability_limit()
        if self.dt > limit:
            logger.warning(
                "dt=%.4e exceeds the %s stability limit %.4e; the run may diverge",
                self.dt, self.solver_kind.value, limit,
            )

        logger.info(
            "Initialized %s simulation: nx=%d, box=%.4g, dx=%.4e, dt=%.4e, "
            "%d species, %d particles",
            self.solver_kind.value, self.nx, self.box, self.dx, self.dt,
            len(self.species), sum(sp.n_particles for sp in self.species),
        )

    @classmethod
    def initialize(
        cls,
        nx: int,
        box: float,
        dt: float,
        species: Sequence[SpeciesConfig | dict[str, Any]] = (),
        solver: SolverKind | str = SolverKind.FDTD,
        boundary: str = "periodic",
        seed: int | None = None,
    ) -> SimulationEngine:
        """Build an engine from explicit parameters.

        Args:
            nx: Number of cells.
            box: Box length.
            dt: Timestep.
            species: Species configurations (models or plain mappings).
            solver: ``"fdtd"``, ``"pstd"`` or ``"psatd"``.
            boundary: Particle boundary policy.
            seed: Seed for the thermal-velocity generator.
        """
        solver = solver.value if isinstance(solver, SolverKind) else solver
        return cls({
            "nx": nx,
            "box": box,
            "dt": dt,
            "solver": solver,
            "boundary": boundary,
            "seed": seed,
            "species": list(species),
        })

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    @property
    def iteration(self) -> int:
        return self._iteration

    @property
    def time(self) -> float:
        """Elapsed simulation time, ``iteration * dt``."""
        return self._iteration * self.dt

    def switch_solver(self, kind: SolverKind | str) -> None:
        """Replace the field solver, keeping the current real-space fields.

        The new solver allocates its own working buffers; nothing of the old
        solver is reused.
        """
        self.solver_kind = SolverKind(kind)
        self.solver = make_solver(self.solver_kind, self.fields)
        logger.info(
            "Switched field solver to %s at iteration %d", self.solver_kind.value, self._iteration
        )

    # ------------------------------------------------------------------
    # Checkpoint / restart
    # ------------------------------------------------------------------

    def checkpoint(self) -> dict[str, Any]:
        """Snapshot of the full simulation state (fields, particles, counters).

        Every array is a copy, so the snapshot is unaffected by later
        iterations.
        """
        return {
            "iteration": self._iteration,
            "solver": self.solver_kind.value,
            "fields": self.fields.checkpoint(),
            "species": {sp.name: sp.checkpoint() for sp in self.species},
        }

    def restart(self, data: dict[str, Any]) -> None:
        """Restore the state saved by :meth:`checkpoint`.

        Raises:
            KeyError: If the snapshot lacks one of the engine's species.
        """
        for sp in self.species:
            if sp.name not in data["species"]:
                raise KeyError(f"checkpoint has no species named '{sp.name}'")

        if SolverKind(data["solver"]) is not self.solver_kind:
            self.switch_solver(data["solver"])
        self.fields.restart(data["fields"])
        for sp in self.species:
            sp.restart(data["species"][sp.name])
        self._iteration = int(data["iteration"])

        logger.info(
            "Restored from checkpoint: t=%.4e, iteration=%d, %d particles",
            self.time, self._iteration, sum(sp.n_particles for sp in self.species),
        )

    # ------------------------------------------------------------------
    # Iteration stages
    # ------------------------------------------------------------------

    def deposit(self) -> None:
        """Zero the accumulators and deposit J and rho from every species."""
        self.fields.zero_sources()
        for sp in self.species:
            sp.deposit_current(self.fields.J)
            sp.deposit_charge(self.fields.rho)

    def advance_fields(self) -> None:
        """Advance E and B by one timestep with the deposited current."""
        self.solver.advance(self.dt, self.fields.J)

    def push(self) -> None:
        """Push every species in the current fields."""
        for sp in self.species:
            sp.push(self.fields.E, self.fields.B)

    def iterate(self) -> StepResult:
        """Run one full iteration: deposit, field advance, push."""
        self.deposit()
        self.advance_fields()
        self.push()
        self._iteration += 1

        result = StepResult(
            iteration=self._iteration,
            time=self.time,
            dt=self.dt,
            kinetic_energy=float(sum(sp.energy for sp in self.species)),
            field_energy=self.field_energy(),
            n_particles=sum(sp.n_particles for sp in self.species),
        )
        logger.debug(
            "Iteration %d: t=%.4e, KE=%.6e, FE=%.6e",
            result.iteration, result.time, result.kinetic_energy, result.field_energy,
        )
        return result

    def run(self, n_iterations: int, record: str | None = None) -> np.ndarray | None:
        """Run ``n_iterations`` iterations.

        Args:
            n_iterations: Number of iterations to run.
            record: Field component to record after every iteration.

        Returns:
            Recorded series of shape ``(n_iterations, nx)`` if ``record`` is
            given, else ``None``.
        """
        if record is not None and record not in COMPONENTS:
            raise ValueError(f"component must be one of {COMPONENTS}, got '{record}'")

        series = np.empty((n_iterations, self.nx)) if record is not None else None
        t_wall_start = wall_time.monotonic()
        logger.info("Starting run: %d iterations from t=%.4e", n_iterations, self.time)

        for i in range(n_iterations):
            self.iterate()
            if series is not None:
                series[i] = self.fields.component(record)

        t_wall = wall_time.monotonic() - t_wall_start
        logger.info(
            "Run complete: %d iterations in %.2f s (%.1f it/s), t=%.4e",
            n_iterations, t_wall, n_iterations / max(t_wall, 1e-10), self.time,
        )
        return series

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_species(self, name: str) -> Species:
        for sp in self.species:
            if sp.name == name:
                return sp
        raise KeyError(f"no species named '{name}'")

    def field(self, component: str) -> np.ndarray:
        """Copy of one field component across all cells."""
        return self.solver.sample(component)

    def charge_density(self, name: str | None = None) -> np.ndarray:
        """Charge density at the current particle positions.

        Args:
            name: Species name; ``None`` sums over all species.
        """
        if name is not None:
            return self.get_species(name).charge_density()
        rho = np.zeros(self.nx)
        for sp in self.species:
            sp.deposit_charge(rho)
        return rho

    def kinetic_energy(self) -> dict[str, float]:
        """Kinetic energy of each species from its last push."""
        return {sp.name: sp.energy for sp in self.species}

    def field_energy(self) -> float:
        uE, uB = self.solver.energy()
        return float(np.sum(uE) + np.sum(uB))

    def phase_space(
        self,
        name: str,
        quantities: tuple[str, str] = ("x1", "u1"),
        nbins: tuple[int, int] = (64, 64),
        ranges: tuple[tuple[float, float], tuple[float, float]] | None = None,
    ) -> np.ndarray:
        """Phase-space density of one species (see :meth:`Species.phase_space`)."""
        return self.get_species(name).phase_space(quantities, nbins, ranges)

    def gauss_residual(self) -> float:
        """Max violation of Gauss's law for the last deposited charge."""
        return self.fields.gauss_residual()

    # ------------------------------------------------------------------
    # Initial conditions
    # ------------------------------------------------------------------

    def seed_mode(self, component: str, mode: int, amplitude: float) -> None:
        """Add ``amplitude * cos(k x)`` to a field component.

        ``k = 2 pi mode / box``; the cosine is sampled where the component
        lives on the staggered grid.
        """
        k = 2.0 * np.pi * mode / self.box
        offset = 0.5 if component in HALF_NODE_COMPONENTS else 0.0
        x = (np.arange(self.nx) + offset) * self.dx
        self.solver.set_component(
            component, self.solver.sample(component) + amplitude * np.cos(k * x)
        )
