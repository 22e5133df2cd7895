"""Field state: grid storage for E, B and the shared charge/current accumulators.

All arrays live on a periodic 1-D Yee grid of ``nx`` points. Vector arrays
have shape ``(3, nx)`` where axis 0 is the component (x, y, z):

- ``E[1]``, ``E[2]``, ``B[0]``, ``rho``, ``J[1]``, ``J[2]`` on nodes ``i * dx``
- ``E[0]``, ``B[1]``, ``B[2]``, ``J[0]`` on half nodes ``(i + 1/2) * dx``
"""

from __future__ import annotations

import numpy as np

COMPONENTS = ("Ex", "Ey", "Ez", "Bx", "By", "Bz")

# Components sampled at (i + 1/2) * dx
HALF_NODE_COMPONENTS = ("Ex", "By", "Bz")


class FieldState:
    """Electromagnetic fields plus the per-iteration source accumulators."""

    def __init__(self, nx: int, dx: float) -> None:
        self.nx = nx
        self.dx = dx

        self.E = np.zeros((3, nx))
        self.B = np.zeros((3, nx))
        self.J = np.zeros((3, nx))
        self.rho = np.zeros(nx)

    def zero_sources(self) -> None:
        """Reset rho and J; called once per iteration before any deposit."""
        self.rho.fill(0.0)
        self.J.fill(0.0)

    def component(self, name: str) -> np.ndarray:
        """Writable view of one field component (``"Ex"`` ... ``"Bz"``)."""
        if name not in COMPONENTS:
            raise ValueError(f"component must be one of {COMPONENTS}, got '{name}'")
        idx = COMPONENTS.index(name)
        return self.E[idx] if idx < 3 else self.B[idx - 3]

    # --- Diagnostics ---

    def energy(self) -> tuple[np.ndarray, np.ndarray]:
        """Electric and magnetic field energy per component.

        Returns:
            ``(uE, uB)``, each shape (3,), with ``u = 0.5 * sum(f^2) * dx``.
        """
        uE = 0.5 * np.sum(self.E**2, axis=1) * self.dx
        uB = 0.5 * np.sum(self.B**2, axis=1) * self.dx
        return uE, uB

    def gauss_residual(self, background: float | None = None) -> float:
        """Return max |dEx/dx - (rho - background)| on the nodes.

        Args:
            background: Neutralizing charge density; defaults to ``mean(rho)``
                (the periodic grid only supports a neutral total charge).
        """
        if background is None:
            background = float(np.mean(self.rho))
        div_E = (self.E[0] - np.roll(self.E[0], 1)) / self.dx
        return float(np.max(np.abs(div_E - (self.rho - background))))

    # --- Checkpoint/restart ---

    def checkpoint(self) -> dict[str, np.ndarray]:
        return {"E": self.E.copy(), "B": self.B.copy(), "J": self.J.copy(), "rho": self.rho.copy()}

    def restart(self, data: dict[str, np.ndarray]) -> None:
        self.E[...] = data["E"]
        self.B[...] = data["B"]
        self.J[...] = data["J"]
        self.rho[...] = data["rho"]
