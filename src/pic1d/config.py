"""Pydantic v2 configuration system for 1D PIC simulations.

Provides validated, typed configuration with submodels for the density
profile and each particle species. Supports JSON I/O and cross-field
validation. Units are normalized: c = eps0 = 1, lengths in c/wp, times
in 1/wp.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

SOLVER_KINDS = ("fdtd", "pstd", "psatd")
BOUNDARY_KINDS = ("periodic", "open", "reflective")
DENSITY_KINDS = ("uniform", "step", "slab", "ramp", "custom")

# Longest species name accepted (diagnostic labels are fixed width)
MAX_SPECIES_NAME = 32


class DensityConfig(BaseModel):
    """Density profile used for particle injection."""

    type: str = Field("uniform", description="Profile: 'uniform', 'step', 'slab', 'ramp', 'custom'")
    n: float = Field(1.0, gt=0, description="Reference density (multiplies the profile)")
    start: float = Field(0.0, description="Plasma start position")
    end: float = Field(0.0, description="Plasma end position (slab, ramp)")
    ramp: list[float] = Field(
        default_factory=lambda: [1.0, 1.0],
        min_length=2,
        max_length=2,
        description="Relative density at ramp start and end",
    )
    custom: Callable[[float], float] | None = Field(
        None,
        exclude=True,
        description="Density function of position (custom profiles only)",
    )

    @model_validator(mode="after")
    def validate_profile(self) -> DensityConfig:
        if self.type not in DENSITY_KINDS:
            raise ValueError(
                f"density type must be one of {', '.join(DENSITY_KINDS)}, got '{self.type}'"
            )
        if self.type in ("slab", "ramp") and self.start > self.end:
            raise ValueError(f"start ({self.start}) must not exceed end ({self.end})")
        if self.type == "ramp":
            if self.start == self.end:
                raise ValueError("ramp requires end > start")
            if any(r < 0 for r in self.ramp):
                raise ValueError(f"ramp densities must be non-negative, got {self.ramp}")
        if self.type == "custom" and self.custom is None:
            raise ValueError("custom density profile requires a 'custom' callable")
        return self


class SpeciesConfig(BaseModel):
    """Particle species parameters."""

    name: str = Field(..., min_length=1, max_length=MAX_SPECIES_NAME, description="Species name")
    m_q: float = Field(..., description="Mass-to-charge ratio (electrons: -1)")
    ppc: int = Field(..., gt=0, description="Particles per cell")
    ufl: list[float] = Field(
        default_factory=lambda: [0.0, 0.0, 0.0],
        min_length=3,
        max_length=3,
        description="Fluid (drift) velocity",
    )
    uth: list[float] = Field(
        default_factory=lambda: [0.0, 0.0, 0.0],
        min_length=3,
        max_length=3,
        description="Thermal velocity spread per component",
    )
    density: DensityConfig = Field(default_factory=DensityConfig)

    @model_validator(mode="after")
    def validate_species(self) -> SpeciesConfig:
        if self.m_q == 0.0:
            raise ValueError("m_q must be non-zero")
        if any(u < 0 for u in self.uth):
            raise ValueError(f"uth components must be non-negative, got {self.uth}")
        return self


class SimulationConfig(BaseModel):
    """Top-level simulation configuration."""

    nx: int = Field(..., gt=0, description="Number of cells")
    box: float = Field(..., gt=0, description="Box length")
    dt: float = Field(..., gt=0, description="Timestep")
    solver: str = Field("fdtd", description="Field solver: 'fdtd', 'pstd' or 'psatd'")
    boundary: str = Field(
        "periodic",
        description="Particle boundary: 'periodic', 'open' or 'reflective'",
    )
    seed: int | None = Field(None, ge=0, description="Seed for the velocity RNG")
    species: list[SpeciesConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_simulation(self) -> SimulationConfig:
        if self.solver not in SOLVER_KINDS:
            raise ValueError(
                f"solver must be 'fdtd', 'pstd' or 'psatd', got '{self.solver}'"
            )
        if self.boundary not in BOUNDARY_KINDS:
            raise ValueError(
                f"boundary must be 'periodic', 'open' or 'reflective', got '{self.boundary}'"
            )
        names = [sp.name for sp in self.species]
        if len(set(names)) != len(names):
            raise ValueError(f"species names must be unique, got {names}")
        return self

    @property
    def dx(self) -> float:
        """Cell size."""
        return self.box / self.nx

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out
