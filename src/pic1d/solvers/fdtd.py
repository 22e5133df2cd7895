"""Finite-difference time-domain (Yee) field solver.

Explicit leapfrog on the staggered periodic grid, in normalized units:

    dBy/dt =  dEz/dx          dEx/dt = -Jx
    dBz/dt = -dEy/dx          dEy/dt = -dBz/dx - Jy
                              dEz/dt =  dBy/dx - Jz

B is advanced in two half steps around the full E step so that both E and
B are available at integer times for the particle push. The scheme is
stable for dt <= dx; this is not checked at runtime.
"""

from __future__ import annotations

import numpy as np

from pic1d.core.bases import FieldSolverBase


class FDTDSolver(FieldSolverBase):
    """Real-space Yee solver using local centred differences."""

    kind = "fdtd"

    def stability_limit(self) -> float:
        return self.dx

    def _advance_B(self, dt: float) -> None:
        E, B = self.fields.E, self.fields.B
        c = dt / self.dx
        # By, Bz at half nodes i+1/2: difference of node values i+1 and i
        B[1] += c * (np.roll(E[2], -1) - E[2])
        B[2] -= c * (np.roll(E[1], -1) - E[1])

    def _advance_E(self, dt: float, J: np.ndarray) -> None:
        E, B = self.fields.E, self.fields.B
        c = dt / self.dx
        E[0] -= dt * J[0]
        # Ey, Ez at nodes i: difference of half-node values i+1/2 and i-1/2
        E[1] -= c * (B[2] - np.roll(B[2], 1)) + dt * J[1]
        E[2] += c * (B[1] - np.roll(B[1], 1)) - dt * J[2]

    def advance(self, dt: float, J: np.ndarray) -> None:
        self._advance_B(0.5 * dt)
        self._advance_E(dt, J)
        self._advance_B(0.5 * dt)
