"""Growable particle buffer.

Particles are stored column-wise (cell index, in-cell offset, velocity) in
arrays whose capacity grows geometrically and never shrinks. Only the first
``count`` entries are live. The arrays are owned by the buffer; kernels get
the full arrays plus ``count`` and never resize them.
"""

from __future__ import annotations

import logging

import numpy as np

from pic1d.errors import ParticleBufferError

logger = logging.getLogger(__name__)

# Capacity multiplier applied on growth
GROWTH_FACTOR = 1.5


class ParticleBuffer:
    """Column storage for the particles of one species.

    Args:
        capacity: Initial capacity (number of particles).
    """

    def __init__(self, capacity: int = 0) -> None:
        capacity = max(int(capacity), 0)
        self.count = 0
        self.ix = np.zeros(capacity, dtype=np.int32)
        self.x = np.zeros(capacity, dtype=np.float64)
        self.u = np.zeros((capacity, 3), dtype=np.float64)

    @property
    def capacity(self) -> int:
        return int(self.ix.shape[0])

    def __len__(self) -> int:
        return self.count

    def reserve(self, required: int) -> None:
        """Make room for at least ``required`` particles.

        The new capacity is the larger of ``required`` and the current
        capacity times ``GROWTH_FACTOR``. The buffer is only swapped in once
        every new array has been allocated, so a failed growth leaves it
        untouched.

        Raises:
            ParticleBufferError: If the new arrays cannot be allocated.
        """
        if required <= self.capacity:
            return

        new_capacity = max(required, int(np.ceil(self.capacity * GROWTH_FACTOR)))
        try:
            ix = np.zeros(new_capacity, dtype=np.int32)
            x = np.zeros(new_capacity, dtype=np.float64)
            u = np.zeros((new_capacity, 3), dtype=np.float64)
        except MemoryError as exc:
            raise ParticleBufferError(
                f"cannot grow particle buffer from {self.capacity} to {new_capacity}"
            ) from exc

        n = self.count
        ix[:n] = self.ix[:n]
        x[:n] = self.x[:n]
        u[:n] = self.u[:n]
        logger.debug("Particle buffer grown: %d -> %d", self.capacity, new_capacity)
        self.ix, self.x, self.u = ix, x, u

    def append(self, ix: np.ndarray, x: np.ndarray, u: np.ndarray) -> None:
        """Append particles, growing the buffer first if needed."""
        n_new = int(np.shape(ix)[0])
        if n_new == 0:
            return
        self.reserve(self.count + n_new)

        start, stop = self.count, self.count + n_new
        self.ix[start:stop] = ix
        self.x[start:stop] = x
        self.u[start:stop] = u
        self.count = stop

    def compact(self, keep: np.ndarray) -> int:
        """Drop the live particles where ``keep`` is False.

        Survivors keep their relative order. Capacity is unchanged.

        Args:
            keep: Boolean mask over the live particles, shape (count,).

        Returns:
            Number of particles removed.
        """
        keep = np.asarray(keep, dtype=bool)
        if keep.shape[0] != self.count:
            raise ValueError(f"mask length {keep.shape[0]} != particle count {self.count}")

        n_keep = int(np.count_nonzero(keep))
        removed = self.count - n_keep
        if removed == 0:
            return 0

        self.ix[:n_keep] = self.ix[: self.count][keep]
        self.x[:n_keep] = self.x[: self.count][keep]
        self.u[:n_keep] = self.u[: self.count][keep]
        self.count = n_keep
        return removed

    # --- Read-only views of the live particles ---

    def _view(self, arr: np.ndarray) -> np.ndarray:
        view = arr[: self.count]
        view.flags.writeable = False
        return view

    @property
    def live_ix(self) -> np.ndarray:
        return self._view(self.ix)

    @property
    def live_x(self) -> np.ndarray:
        return self._view(self.x)

    @property
    def live_u(self) -> np.ndarray:
        return self._view(self.u)

    def positions(self, dx: float) -> np.ndarray:
        """Absolute particle positions, ``(ix + x) * dx``."""
        return (self.ix[: self.count] + self.x[: self.count]) * dx
