"""
Time integration drivers.

This package provides:
    - Pseudo-time steady-state drivers (forward Euler, backward Euler, LU-SGS)
    - TVD Runge-Kutta driver for unsteady problems
    - Factory helpers building complete runs from a SimulationConfig
"""

from .base import (
    SteadySolver,
    SolveReport,
    ramp_schedule,
)

from .explicit import SteadyForwardEulerSolver
from .implicit import SteadyBackwardEulerSolver
from .lusgs_driver import SteadyLUSGSSolver

from .tvdrk import (
    TVDRKSolver,
    tvdrk_coefficients,
)

from .factory import (
    build_mesh,
    build_flux,
    freestream_state,
    initial_state,
    create_solver,
    setup_simulation,
    run_simulation,
)

__all__ = [
    # Drivers
    'SteadySolver',
    'SolveReport',
    'ramp_schedule',
    'SteadyForwardEulerSolver',
    'SteadyBackwardEulerSolver',
    'SteadyLUSGSSolver',
    'TVDRKSolver',
    'tvdrk_coefficients',
    # Factory
    'build_mesh',
    'build_flux',
    'freestream_state',
    'initial_state',
    'create_solver',
    'setup_simulation',
    'run_simulation',
]
