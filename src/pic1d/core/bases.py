"""Abstract base classes and shared data types.

- ``StepResult``: summary of one simulation iteration
- ``FieldSolverBase``: ABC for the interchangeable field solvers
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from pic1d.core.field_manager import FieldState


@dataclass
class StepResult:
    """Result of a single simulation iteration.

    Attributes:
        iteration: Iteration counter after this step.
        time: Simulation time after this step.
        dt: Timestep used.
        kinetic_energy: Total particle kinetic energy (all species).
        field_energy: Total electromagnetic field energy.
        n_particles: Live particles summed over species.
    """

    iteration: int = 0
    time: float = 0.0
    dt: float = 0.0
    kinetic_energy: float = 0.0
    field_energy: float = 0.0
    n_particles: int = 0

    @property
    def total_energy(self) -> float:
        return self.kinetic_energy + self.field_energy


class FieldSolverBase(ABC):
    """Abstract base for the field solvers.

    A solver advances the fields held in a :class:`FieldState` by one
    timestep, given the current deposited for that step. Fields are kept at
    integer times; the current is time-centred between them.
    """

    kind: ClassVar[str] = ""

    def __init__(self, fields: FieldState) -> None:
        self.fields = fields
        self.nx = fields.nx
        self.dx = fields.dx

    @abstractmethod
    def advance(self, dt: float, J: np.ndarray) -> None:
        """Advance E and B from t to t + dt in place.

        Args:
            dt: Timestep.
            J: Current density for the step, shape (3, nx).
        """

    def stability_limit(self) -> float:
        """Largest stable timestep (``inf`` if unconditionally stable)."""
        return math.inf

    def sample(self, component: str) -> np.ndarray:
        """Copy of one field component across all cells."""
        return self.fields.component(component).copy()

    def set_component(self, component: str, values: np.ndarray | float) -> None:
        """Overwrite one field component, e.g. to seed an initial wave."""
        self.fields.component(component)[...] = values

    def energy(self) -> tuple[np.ndarray, np.ndarray]:
        """Electric and magnetic energy per component."""
        return self.fields.energy()
