"""FFT engine for the spectral field solvers.

Thin wrapper around :mod:`scipy.fft` bound to one periodic grid. It caches
the angular wavenumbers and the half-cell phase shifts used to move
staggered (half-node) quantities on and off the collocated spectral grid.
"""

from __future__ import annotations

import numpy as np
import scipy.fft as sp_fft


class FFTEngine:
    """Forward/inverse complex transforms of grid-sized arrays.

    Args:
        nx: Number of grid points.
        dx: Grid spacing.
        workers: Worker threads passed to :mod:`scipy.fft` (``None`` = 1).
    """

    def __init__(self, nx: int, dx: float, workers: int | None = None) -> None:
        self.nx = nx
        self.dx = dx
        self.workers = workers

        # Angular wavenumbers in scipy.fft ordering
        self.k = 2.0 * np.pi * sp_fft.fftfreq(nx, d=dx)

        # Node -> half node (x + dx/2) and back
        self.shift_to_half = np.exp(0.5j * self.k * dx)
        self.shift_to_node = np.conj(self.shift_to_half)

    @property
    def k_nyquist(self) -> float:
        """Largest resolved wavenumber, pi/dx."""
        return np.pi / self.dx

    def forward(self, values: np.ndarray) -> np.ndarray:
        """Transform real-space samples (last axis) to wavenumber space."""
        return sp_fft.fft(values, axis=-1, workers=self.workers)

    def inverse(self, spectrum: np.ndarray) -> np.ndarray:
        """Transform back to real space, keeping only the real part."""
        return sp_fft.ifft(spectrum, axis=-1, workers=self.workers).real

    def forward_half(self, values: np.ndarray) -> np.ndarray:
        """Transform half-node samples to the collocated (node) spectrum."""
        return self.forward(values) * self.shift_to_node

    def inverse_half(self, spectrum: np.ndarray) -> np.ndarray:
        """Transform a collocated spectrum back to half-node samples."""
        return self.inverse(spectrum * self.shift_to_half)
