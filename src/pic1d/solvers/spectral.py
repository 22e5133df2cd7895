"""Spectral field solvers (PSTD and PSATD).

Each advance transforms E, B and J to wavenumber space with the
:class:`~pic1d.fft.FFTEngine`, advances every mode independently and
transforms back to the staggered real-space grid. Half-node components
(Ex, By, Bz, Jx) are moved to and from the collocated spectral grid with
the exact phase shift ``exp(+-i k dx / 2)``, so particles see the same
layout whichever solver is in use.

In wavenumber space (normalized units) the transverse fields form two
independent pairs,

    d/dt (Ey, Bz) = (-ik Bz - Jy, -ik Ey)
    d/dt (Ez, By) = ( ik By - Jz,  ik Ez)

and Ex only responds to Jx.

- PSTD keeps the FDTD leapfrog in time with exact spatial derivatives
  (stable for dt <= 2 dx / pi).
- PSATD applies the exact rotation ``exp(M dt)`` of each pair and the exact
  time integral of a current held constant over the step, so the
  source-free propagation has no time-discretization error.
"""

from __future__ import annotations

import logging
from abc import abstractmethod

import numpy as np

from pic1d.core.bases import FieldSolverBase
from pic1d.core.field_manager import FieldState
from pic1d.fft import FFTEngine

logger = logging.getLogger(__name__)


class SpectralSolver(FieldSolverBase):
    """Common transform plumbing for the spectral solvers.

    Args:
        fields: Field state to advance.
        fft: FFT engine bound to the grid (created if omitted).
    """

    def __init__(self, fields: FieldState, fft: FFTEngine | None = None) -> None:
        super().__init__(fields)
        self.fft = fft if fft is not None else FFTEngine(fields.nx, fields.dx)
        self.k = self.fft.k

        # Wavenumber-space buffers, all components collocated on the nodes
        self.Ek = np.zeros((3, self.nx), dtype=np.complex128)
        self.Bk = np.zeros((3, self.nx), dtype=np.complex128)
        self.Jk = np.zeros((3, self.nx), dtype=np.complex128)

    def _forward(self, J: np.ndarray) -> None:
        E, B, f = self.fields.E, self.fields.B, self.fft
        self.Ek[0] = f.forward_half(E[0])
        self.Ek[1] = f.forward(E[1])
        self.Ek[2] = f.forward(E[2])
        self.Bk[1] = f.forward_half(B[1])
        self.Bk[2] = f.forward_half(B[2])
        self.Jk[0] = f.forward_half(J[0])
        self.Jk[1] = f.forward(J[1])
        self.Jk[2] = f.forward(J[2])

    def _inverse(self) -> None:
        E, B, f = self.fields.E, self.fields.B, self.fft
        E[0] = f.inverse_half(self.Ek[0])
        E[1] = f.inverse(self.Ek[1])
        E[2] = f.inverse(self.Ek[2])
        B[1] = f.inverse_half(self.Bk[1])
        B[2] = f.inverse_half(self.Bk[2])

    @abstractmethod
    def _propagate(self, dt: float) -> None:
        """Advance the k-space buffers ``Ek``, ``Bk`` by ``dt`` with ``Jk``."""

    def advance(self, dt: float, J: np.ndarray) -> None:
        # Bx is constant in 1-D and never leaves real space
        self._forward(J)
        self._propagate(dt)
        self._inverse()


class PSTDSolver(SpectralSolver):
    """Pseudo-spectral time-domain: spectral derivatives, leapfrog in time."""

    kind = "pstd"

    def stability_limit(self) -> float:
        return 2.0 * self.dx / np.pi

    def _half_B(self, dt: float) -> None:
        ik = 1j * self.k
        self.Bk[1] += 0.5 * dt * ik * self.Ek[2]
        self.Bk[2] -= 0.5 * dt * ik * self.Ek[1]

    def _propagate(self, dt: float) -> None:
        ik = 1j * self.k
        Ek, Bk, Jk = self.Ek, self.Bk, self.Jk

        self._half_B(dt)
        Ek[0] -= dt * Jk[0]
        Ek[1] -= dt * (ik * Bk[2] + Jk[1])
        Ek[2] += dt * (ik * Bk[1] - Jk[2])
        self._half_B(dt)


class PSATDSolver(SpectralSolver):
    """Pseudo-spectral analytical time-domain solver."""

    kind = "psatd"

    def __init__(self, fields: FieldState, fft: FFTEngine | None = None) -> None:
        super().__init__(fields, fft)
        self._dt: float | None = None

    def _coefficients(self, dt: float) -> None:
        """Per-mode propagator coefficients, cached for the current dt."""
        if self._dt == dt:
            return
        k = self.k
        kdt = k * dt
        self._C = np.cos(kdt)
        self._S = np.sin(kdt)

        nonzero = k != 0.0
        safe_k = np.where(nonzero, k, 1.0)
        # Limits for k -> 0: sin(k dt)/k -> dt, (1 - cos(k dt))/k -> 0
        self._S_k = np.where(nonzero, self._S / safe_k, dt)
        self._C1_k = np.where(nonzero, (1.0 - self._C) / safe_k, 0.0)
        self._dt = dt
        logger.debug("PSATD coefficients computed for dt=%.4e", dt)

    def _propagate(self, dt: float) -> None:
        self._coefficients(dt)
        C, S, S_k, C1_k = self._C, self._S, self._S_k, self._C1_k
        Ek, Bk, Jk = self.Ek, self.Bk, self.Jk

        ey, bz = Ek[1].copy(), Bk[2].copy()
        ez, by = Ek[2].copy(), Bk[1].copy()

        Ek[1] = C * ey - 1j * S * bz - S_k * Jk[1]
        Bk[2] = C * bz - 1j * S * ey + 1j * C1_k * Jk[1]

        Ek[2] = C * ez + 1j * S * by - S_k * Jk[2]
        Bk[1] = C * by + 1j * S * ez - 1j * C1_k * Jk[2]

        Ek[0] -= dt * Jk[0]
