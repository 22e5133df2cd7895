"""Density profiles and particle placement for species injection.

Each profile kind is a small dataclass exposing ``evaluate(x)``, the target
density at an absolute position, and ``place(...)``, which returns the cell
indices and in-cell offsets of the particles to inject over a range of cells.

Two placement strategies are used:

* Sharp profiles (Uniform, Step, Slab) put ``ppc`` particles per cell at
  the regular offsets ``(k + 0.5) / ppc`` and keep those where the profile
  is non-zero.
* Smooth profiles (Ramp, Custom) integrate the relative density cell by
  cell (trapezoid rule on the cell-edge values) and place a particle each
  time the running integral crosses ``(k + 0.5) / ppc``. The offset inside
  the cell inverts the linear in-cell density, so the local particle count
  follows the profile. The running integral is carried between calls.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from pic1d.config import DensityConfig
from pic1d.errors import ConfigurationError, InjectionError


@dataclass
class Placement:
    """Particles selected by one injection call.

    Attributes:
        ix: Cell indices, shape (N,).
        x: Offsets inside the cell in [0, 1), shape (N,).
        charge: Relative charge injected by the call (reference density x cells).
    """

    ix: np.ndarray
    x: np.ndarray
    charge: float

    @property
    def count(self) -> int:
        return int(self.ix.shape[0])


@dataclass(frozen=True)
class DensityProfile(ABC):
    """Base class for all density profiles.

    Attributes:
        n: Reference density, multiplies the profile shape.
    """

    kind: ClassVar[str] = ""

    n: float = 1.0

    def __post_init__(self) -> None:
        if not self.n > 0.0:
            raise ConfigurationError(f"reference density must be positive, got {self.n}")

    @abstractmethod
    def evaluate(self, position: float) -> float:
        """Density at an absolute position."""

    def place(
        self,
        i0: int,
        i1: int,
        ppc: int,
        dx: float,
        injected_charge: float = 0.0,
        injected_particles: int = 0,
    ) -> Placement:
        """Select particle positions in cells ``i0..i1`` (inclusive)."""
        poscell = (np.arange(ppc) + 0.5) / ppc
        cells = np.arange(i0, i1 + 1, dtype=np.int32)
        ix = np.repeat(cells, ppc)
        x = np.tile(poscell, cells.shape[0])

        pos = (ix + x) * dx
        keep = np.array([self.evaluate(p) > 0.0 for p in pos], dtype=bool)
        return Placement(ix=ix[keep], x=x[keep], charge=float(np.count_nonzero(keep)) / ppc)


@dataclass(frozen=True)
class Uniform(DensityProfile):
    kind: ClassVar[str] = "uniform"

    def evaluate(self, position: float) -> float:
        return self.n

    def place(
        self,
        i0: int,
        i1: int,
        ppc: int,
        dx: float,
        injected_charge: float = 0.0,
        injected_particles: int = 0,
    ) -> Placement:
        poscell = (np.arange(ppc) + 0.5) / ppc
        cells = np.arange(i0, i1 + 1, dtype=np.int32)
        return Placement(
            ix=np.repeat(cells, ppc),
            x=np.tile(poscell, cells.shape[0]),
            charge=float(cells.shape[0]),
        )


@dataclass(frozen=True)
class Step(DensityProfile):
    """Zero before ``start``, reference density after."""

    kind: ClassVar[str] = "step"

    start: float = 0.0

    def evaluate(self, position: float) -> float:
        return self.n if position >= self.start else 0.0


@dataclass(frozen=True)
class Slab(DensityProfile):
    """Reference density on ``[start, end)``, zero outside."""

    kind: ClassVar[str] = "slab"

    start: float = 0.0
    end: float = 0.0

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.start > self.end:
            raise ConfigurationError(f"start ({self.start}) must not exceed end ({self.end})")

    def evaluate(self, position: float) -> float:
        return self.n if self.start <= position < self.end else 0.0


class _CumulativePlacement:
    """Mixin placing particles by inverting the running density integral."""

    def relative(self, position: float) -> float:
        return self.evaluate(position) / self.n

    def place(
        self,
        i0: int,
        i1: int,
        ppc: int,
        dx: float,
        injected_charge: float = 0.0,
        injected_particles: int = 0,
    ) -> Placement:
        cpp = 1.0 / ppc
        edges = [self.relative(i * dx) for i in range(i0, i1 + 2)]

        q = injected_charge
        k = injected_particles
        ix_parts: list[np.ndarray] = []
        x_parts: list[np.ndarray] = []

        for c in range(i0, i1 + 1):
            n0 = edges[c - i0]
            n1 = edges[c - i0 + 1]
            q1 = q + 0.5 * (n0 + n1)

            # Particles whose target charge (k + 0.5) * cpp falls below q1
            k_hi = max(k, math.ceil(q1 * ppc - 0.5))
            if k_hi > k:
                ks = np.arange(k, k_hi)
                qi = (ks + 0.5) * cpp - q
                d = n1 - n0
                # Root of n0*x + d*x^2/2 = qi, written to stay finite as d -> 0
                disc = np.maximum(n0 * n0 + 2.0 * d * qi, 0.0)
                x = 2.0 * qi / (n0 + np.sqrt(disc))
                x_parts.append(np.clip(x, 0.0, np.nextafter(1.0, 0.0)))
                ix_parts.append(np.full(ks.shape[0], c, dtype=np.int32))
                k = k_hi
            q = q1

        if ix_parts:
            ix = np.concatenate(ix_parts)
            x = np.concatenate(x_parts)
        else:
            ix = np.empty(0, dtype=np.int32)
            x = np.empty(0, dtype=np.float64)
        return Placement(ix=ix, x=x, charge=q - injected_charge)


@dataclass(frozen=True)
class Ramp(_CumulativePlacement, DensityProfile):
    """Linear density from ``ramp[0]`` at ``start`` to ``ramp[1]`` at ``end``."""

    kind: ClassVar[str] = "ramp"

    start: float = 0.0
    end: float = 1.0
    ramp: tuple[float, float] = (1.0, 1.0)

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.start < self.end:
            raise ConfigurationError(f"ramp requires start < end, got [{self.start}, {self.end}]")
        if min(self.ramp) < 0.0:
            raise ConfigurationError(f"ramp densities must be non-negative, got {self.ramp}")

    def evaluate(self, position: float) -> float:
        if position < self.start or position > self.end:
            return 0.0
        t = (position - self.start) / (self.end - self.start)
        r0, r1 = self.ramp
        return self.n * (r0 + (r1 - r0) * t)


@dataclass(frozen=True)
class Custom(_CumulativePlacement, DensityProfile):
    """Density given by a function of position, scaled by ``n``.

    The function must return a finite, non-negative value everywhere it is
    sampled; anything else raises :class:`InjectionError`.
    """

    kind: ClassVar[str] = "custom"

    func: Callable[[float], float] | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.func is None:
            raise ConfigurationError("custom density profile requires a density function")

    def evaluate(self, position: float) -> float:
        value = float(self.func(position))
        if not math.isfinite(value) or value < 0.0:
            raise InjectionError(
                f"custom density must be finite and non-negative, got {value} at x={position}"
            )
        return self.n * value


def profile_from_config(cfg: DensityConfig) -> DensityProfile:
    """Build the profile described by a :class:`DensityConfig`."""
    if cfg.type == "uniform":
        return Uniform(n=cfg.n)
    if cfg.type == "step":
        return Step(n=cfg.n, start=cfg.start)
    if cfg.type == "slab":
        return Slab(n=cfg.n, start=cfg.start, end=cfg.end)
    if cfg.type == "ramp":
        return Ramp(n=cfg.n, start=cfg.start, end=cfg.end, ramp=(cfg.ramp[0], cfg.ramp[1]))
    if cfg.type == "custom":
        return Custom(n=cfg.n, func=cfg.custom)
    raise ConfigurationError(f"unknown density type '{cfg.type}'")
