"""pic1d: 1-D electromagnetic particle-in-cell engine.

Species with density-profile injection, charge-conserving deposition and a
Boris mover, coupled to interchangeable FDTD, PSTD and PSATD field solvers.
"""

from pic1d.config import DensityConfig, SimulationConfig, SpeciesConfig
from pic1d.engine import SimulationEngine
from pic1d.errors import ConfigurationError, InjectionError, ParticleBufferError, PICError
from pic1d.solvers import SolverKind

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DensityConfig",
    "InjectionError",
    "PICError",
    "ParticleBufferError",
    "SimulationConfig",
    "SimulationEngine",
    "SolverKind",
    "SpeciesConfig",
]
