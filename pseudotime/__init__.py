"""
Pseudo-time and multistage time integration for finite volume residuals.

Drivers march a cell-centred state either to steady state in pseudo-time
(forward Euler, backward Euler with a Krylov solve, matrix-free LU-SGS) or
through physical time with TVD Runge-Kutta schemes.
"""

__version__ = "0.1.0"
