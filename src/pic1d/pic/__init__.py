"""Particle side of the PIC loop.

Exports the species, density profiles and particle kernels.
"""

from pic1d.pic.buffer import ParticleBuffer
from pic1d.pic.density import Custom, DensityProfile, Ramp, Slab, Step, Uniform, profile_from_config
from pic1d.pic.kernels import (
    advance_particles,
    deposit_charge,
    deposit_current,
    interpolate_fields,
)
from pic1d.pic.species import Species

__all__ = [
    "Custom",
    "DensityProfile",
    "ParticleBuffer",
    "Ramp",
    "Slab",
    "Species",
    "Step",
    "Uniform",
    "advance_particles",
    "deposit_charge",
    "deposit_current",
    "interpolate_fields",
    "profile_from_config",
]
