"""Particle species: injection, deposition, push and phase-space diagnostics.

A :class:`Species` owns one :class:`ParticleBuffer`. Particles are created
by :meth:`Species.inject` from the species' density profile, deposit charge
and current into caller-owned grid accumulators, and are advanced by
:meth:`Species.push` with fields sampled on the staggered grid.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

import numpy as np

from pic1d.config import MAX_SPECIES_NAME, SpeciesConfig
from pic1d.errors import ConfigurationError
from pic1d.pic.buffer import ParticleBuffer
from pic1d.pic.density import DensityProfile, Uniform, profile_from_config
from pic1d.pic.kernels import (
    BOUNDARY_CODES,
    OPEN,
    advance_particles,
    deposit_charge,
    deposit_current,
)

logger = logging.getLogger(__name__)

# Phase-space quantities understood by Species.phase_space
PHASE_SPACE_QUANTITIES = ("x1", "u1", "u2", "u3")


class Species:
    """A population of macro-particles sharing charge, mass and profile.

    Args:
        name: Species name (at most 32 characters).
        m_q: Mass-to-charge ratio (electrons: -1).
        ppc: Particles per cell for the reference density.
        nx: Number of grid cells.
        box: Box length.
        dt: Timestep.
        density: Density profile to inject (default: uniform, n = 1).
        ufl: Fluid (drift) velocity, 3 components.
        uth: Thermal velocity spread, 3 components.
        boundary: ``"periodic"``, ``"open"`` or ``"reflective"``.
        rng: Random generator used for thermal velocities.
    """

    def __init__(
        self,
        name: str,
        m_q: float,
        ppc: int,
        nx: int,
        box: float,
        dt: float,
        density: DensityProfile | None = None,
        ufl: Sequence[float] = (0.0, 0.0, 0.0),
        uth: Sequence[float] = (0.0, 0.0, 0.0),
        boundary: str = "periodic",
        rng: np.random.Generator | None = None,
    ) -> None:
        if not name or len(name) > MAX_SPECIES_NAME:
            raise ConfigurationError(
                f"species name must have 1 to {MAX_SPECIES_NAME} characters, got '{name}'"
            )
        if m_q == 0.0:
            raise ConfigurationError(f"species '{name}': m_q must be non-zero")
        if ppc <= 0:
            raise ConfigurationError(f"species '{name}': ppc must be positive, got {ppc}")
        if nx <= 0 or box <= 0.0 or dt <= 0.0:
            raise ConfigurationError(
                f"species '{name}': nx, box and dt must be positive, got {nx}, {box}, {dt}"
            )
        if boundary not in BOUNDARY_CODES:
            raise ConfigurationError(f"species '{name}': unknown boundary '{boundary}'")

        self.name = name
        self.m_q = float(m_q)
        self.ppc = int(ppc)
        self.density = density if density is not None else Uniform()
        self.ufl = np.asarray(ufl, dtype=np.float64).reshape(3)
        self.uth = np.asarray(uth, dtype=np.float64).reshape(3)

        # Charge per particle: reference density split over ppc, sign of m_q
        self.q = math.copysign(self.density.n, self.m_q) / self.ppc

        self.nx = int(nx)
        self.box = float(box)
        self.dx = self.box / self.nx
        self.dt = float(dt)

        self.boundary = boundary
        self._boundary_code = BOUNDARY_CODES[boundary]
        self.rng = rng if rng is not None else np.random.default_rng()

        self.particles = ParticleBuffer(capacity=self.nx * self.ppc)
        self.energy = 0.0
        self.injected_particles = 0
        self.injected_charge = 0.0
        self.iteration = 0

    @classmethod
    def from_config(
        cls,
        cfg: SpeciesConfig,
        nx: int,
        box: float,
        dt: float,
        boundary: str = "periodic",
        rng: np.random.Generator | None = None,
    ) -> Species:
        """Build a species from a validated :class:`SpeciesConfig`."""
        return cls(
            name=cfg.name,
            m_q=cfg.m_q,
            ppc=cfg.ppc,
            nx=nx,
            box=box,
            dt=dt,
            density=profile_from_config(cfg.density),
            ufl=cfg.ufl,
            uth=cfg.uth,
            boundary=boundary,
            rng=rng,
        )

    @property
    def n_particles(self) -> int:
        """Number of live particles."""
        return self.particles.count

    @property
    def mass(self) -> float:
        """Mass per macro-particle, q * m_q (always positive)."""
        return self.q * self.m_q

    # -----------------------------------------------------------------
    # Injection
    # -----------------------------------------------------------------

    def inject(self, cells: tuple[int, int] | None = None) -> int:
        """Inject particles following the density profile.

        Args:
            cells: Inclusive cell range ``(i0, i1)``; defaults to the whole grid.

        Returns:
            Number of particles injected.

        Raises:
            ConfigurationError: The cell range is empty or leaves the grid.
            InjectionError: A custom profile produced an invalid density.
            ParticleBufferError: The buffer could not grow.
        """
        i0, i1 = cells if cells is not None else (0, self.nx - 1)
        if not 0 <= i0 <= i1 < self.nx:
            raise ConfigurationError(
                f"species '{self.name}': injection cells must satisfy "
                f"0 <= i0 <= i1 < {self.nx}, got ({i0}, {i1})"
            )
        placement = self.density.place(
            i0, i1, self.ppc, self.dx,
            injected_charge=self.injected_charge,
            injected_particles=self.injected_particles,
        )

        n_new = placement.count
        u = self.ufl + self.uth * self.rng.standard_normal((n_new, 3))
        self.particles.append(placement.ix, placement.x, u)

        self.injected_particles += n_new
        self.injected_charge += placement.charge
        logger.debug(
            "Species '%s': injected %d particles in cells [%d, %d] (total %d)",
            self.name, n_new, i0, i1, self.injected_particles,
        )
        return n_new

    # -----------------------------------------------------------------
    # Deposition
    # -----------------------------------------------------------------

    def deposit_charge(self, rho: np.ndarray) -> np.ndarray:
        """Add this species' charge density to ``rho`` (shape (nx,))."""
        p = self.particles
        return deposit_charge(p.ix, p.x, self.q, rho, count=p.count)

    def deposit_current(self, J: np.ndarray) -> np.ndarray:
        """Add this species' current density for the last step to ``J`` (shape (3, nx))."""
        p = self.particles
        return deposit_current(
            p.ix, p.x, p.u, self.q, self.dt, self.dx, J,
            count=p.count, boundary=self._boundary_code,
        )

    def charge_density(self) -> np.ndarray:
        """Charge density of this species alone, shape (nx,)."""
        return self.deposit_charge(np.zeros(self.nx))

    # -----------------------------------------------------------------
    # Push
    # -----------------------------------------------------------------

    def push(self, E: np.ndarray, B: np.ndarray) -> None:
        """Advance velocities and positions one timestep in fields E, B.

        Particles leaving through an open boundary are removed and the
        buffer is compacted after the push.
        """
        p = self.particles
        energy, keep = advance_particles(
            p.ix, p.x, p.u, E, B, self.m_q, self.dt, self.dx,
            boundary=self._boundary_code, count=p.count,
        )
        self.energy = self.mass * energy

        if self._boundary_code == OPEN:
            removed = p.compact(keep)
            if removed:
                logger.debug("Species '%s': %d particles left the box", self.name, removed)

        self.iteration += 1

    # -----------------------------------------------------------------
    # Checkpoint
    # -----------------------------------------------------------------

    def checkpoint(self) -> dict[str, Any]:
        """Copy of the live particles and the species counters."""
        p = self.particles
        return {
            "ix": p.ix[: p.count].copy(),
            "x": p.x[: p.count].copy(),
            "u": p.u[: p.count].copy(),
            "energy": self.energy,
            "injected_particles": self.injected_particles,
            "injected_charge": self.injected_charge,
            "iteration": self.iteration,
        }

    def restart(self, data: dict[str, Any]) -> None:
        """Replace the particles and counters with a :meth:`checkpoint`."""
        self.particles.count = 0
        self.particles.append(data["ix"], data["x"], data["u"])
        self.energy = float(data["energy"])
        self.injected_particles = int(data["injected_particles"])
        self.injected_charge = float(data["injected_charge"])
        self.iteration = int(data["iteration"])

    # -----------------------------------------------------------------
    # Diagnostics
    # -----------------------------------------------------------------

    def positions(self) -> np.ndarray:
        """Absolute particle positions."""
        return self.particles.positions(self.dx)

    def velocities(self) -> np.ndarray:
        """Read-only view of the particle velocities, shape (N, 3)."""
        return self.particles.live_u

    def _quantity(self, name: str) -> np.ndarray:
        if name == "x1":
            return self.positions()
        if name in ("u1", "u2", "u3"):
            return self.particles.u[: self.n_particles, int(name[1]) - 1]
        raise ValueError(
            f"phase-space quantity must be one of {PHASE_SPACE_QUANTITIES}, got '{name}'"
        )

    def phase_space(
        self,
        quantities: tuple[str, str] = ("x1", "u1"),
        nbins: tuple[int, int] = (64, 64),
        ranges: tuple[tuple[float, float], tuple[float, float]] | None = None,
    ) -> np.ndarray:
        """Deposit a 2-D phase-space density with linear bin weighting.

        Each particle contributes ``|q|`` split over the four nearest bin
        centres; contributions falling outside the ranges are dropped.

        Args:
            quantities: Pair of names from ``x1``, ``u1``, ``u2``, ``u3``.
            nbins: Number of bins along each quantity.
            ranges: ``((min1, max1), (min2, max2))``; defaults to the box
                for ``x1`` and the data extent for velocities.

        Returns:
            Array of shape ``nbins`` indexed ``[bin1, bin2]``.
        """
        v1 = self._quantity(quantities[0])
        v2 = self._quantity(quantities[1])
        if ranges is None:
            ranges = (
                self._default_range(quantities[0], v1),
                self._default_range(quantities[1], v2),
            )

        n1, n2 = int(nbins[0]), int(nbins[1])
        (lo1, hi1), (lo2, hi2) = ranges
        if n1 <= 0 or n2 <= 0 or hi1 <= lo1 or hi2 <= lo2:
            raise ValueError(f"invalid phase-space grid: nbins={nbins}, ranges={ranges}")

        # Bin coordinates relative to bin centres
        f1 = (v1 - lo1) / ((hi1 - lo1) / n1) - 0.5
        f2 = (v2 - lo2) / ((hi2 - lo2) / n2) - 0.5
        i1 = np.floor(f1).astype(np.int64)
        i2 = np.floor(f2).astype(np.int64)
        w1 = f1 - i1
        w2 = f2 - i2

        pha = np.zeros((n1, n2))
        aq = abs(self.q)
        for d1, a1 in ((0, 1.0 - w1), (1, w1)):
            for d2, a2 in ((0, 1.0 - w2), (1, w2)):
                j1 = i1 + d1
                j2 = i2 + d2
                inside = (j1 >= 0) & (j1 < n1) & (j2 >= 0) & (j2 < n2)
                np.add.at(pha, (j1[inside], j2[inside]), aq * (a1 * a2)[inside])
        return pha

    def _default_range(self, name: str, values: np.ndarray) -> tuple[float, float]:
        if name == "x1":
            return (0.0, self.box)
        if values.size == 0:
            return (-1.0, 1.0)
        lo, hi = float(values.min()), float(values.max())
        if hi <= lo:
            lo, hi = lo - 0.5, hi + 0.5
        return (lo, hi)
