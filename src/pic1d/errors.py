"""Exception hierarchy for the PIC engine.

All failures are fatal: the computation is deterministic, so nothing is
retried and nothing is silently degraded.
"""

from __future__ import annotations


class PICError(Exception):
    """Base exception for simulation errors."""


class ConfigurationError(PICError, ValueError):
    """Raised when the simulation configuration is invalid.

    Detected at initialization, before any stepping occurs.
    """


class InjectionError(PICError, ValueError):
    """Raised when a density profile yields a negative or non-finite density."""


class ParticleBufferError(PICError, MemoryError):
    """Raised when a particle buffer cannot grow to hold an injection."""
