"""Verification problems for the field solvers."""

from pic1d.verification.dispersion import (
    DispersionResult,
    analytic_omega,
    measure_omega,
    numerical_omega,
    run_dispersion_check,
)

__all__ = [
    "DispersionResult",
    "analytic_omega",
    "measure_omega",
    "numerical_omega",
    "run_dispersion_check",
]
