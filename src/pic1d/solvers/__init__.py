"""Field solvers: FDTD (real space) and PSTD/PSATD (spectral).

The solver kind is a closed enumeration resolved once, at construction;
switching kind means building a new solver.
"""

from __future__ import annotations

from enum import Enum

from pic1d.core.bases import FieldSolverBase
from pic1d.core.field_manager import FieldState
from pic1d.solvers.fdtd import FDTDSolver
from pic1d.solvers.spectral import PSATDSolver, PSTDSolver, SpectralSolver


class SolverKind(str, Enum):
    FDTD = "fdtd"
    PSTD = "pstd"
    PSATD = "psatd"


_SOLVERS: dict[SolverKind, type[FieldSolverBase]] = {
    SolverKind.FDTD: FDTDSolver,
    SolverKind.PSTD: PSTDSolver,
    SolverKind.PSATD: PSATDSolver,
}


def make_solver(kind: SolverKind | str, fields: FieldState) -> FieldSolverBase:
    """Build the field solver of the given kind bound to ``fields``."""
    return _SOLVERS[SolverKind(kind)](fields)


__all__ = [
    "FDTDSolver",
    "PSATDSolver",
    "PSTDSolver",
    "SolverKind",
    "SpectralSolver",
    "make_solver",
]
