"""
Per-cell Numba kernels shared by the pseudo-time drivers.

Every kernel is a loop over cells parallelised with ``prange``; the
residual norm is a ``+`` reduction. Arrays are (ncells, nvars) for states
and residuals and (ncells,) for areas and local time steps.
"""

import numpy as np
import numpy.typing as npt
from numba import njit, prange

NDArrayFloat = npt.NDArray[np.floating]


@njit(cache=True, parallel=True)
def zero_field(a: np.ndarray) -> None:
    """Set a (ncells, nvars) array to zero in place."""
    n, nvars = a.shape
    for i in prange(n):
        for k in range(nvars):
            a[i, k] = 0.0


@njit(cache=True, parallel=True)
def explicit_update(u: np.ndarray, residual: np.ndarray, dt_local: np.ndarray,
                    area: np.ndarray, cfl: float) -> None:
    """Forward Euler pseudo-time step: u_i -= cfl Δt_i / |Ω_i| R_i."""
    n, nvars = u.shape
    for i in prange(n):
        fac = cfl * dt_local[i] / area[i]
        for k in range(nvars):
            u[i, k] -= fac * residual[i, k]


@njit(cache=True, parallel=True)
def pseudo_time_diagonal(area: np.ndarray, dt_local: np.ndarray, cfl: float,
                         out: np.ndarray) -> None:
    """out_i = |Ω_i| / (cfl Δt_i)."""
    n = area.shape[0]
    for i in prange(n):
        out[i] = area[i] / (cfl * dt_local[i])


@njit(cache=True, parallel=True)
def apply_update(u: np.ndarray, du: np.ndarray) -> None:
    """u += du."""
    n, nvars = u.shape
    for i in prange(n):
        for k in range(nvars):
            u[i, k] += du[i, k]


@njit(cache=True, parallel=True)
def residual_norm(residual: np.ndarray, area: np.ndarray) -> float:
    """Area-weighted L2 norm of the last conserved variable: sqrt(Σ R_i,last² |Ω_i|)."""
    n, nvars = residual.shape
    last = nvars - 1
    total = 0.0
    for i in prange(n):
        total += residual[i, last] * residual[i, last] * area[i]
    return np.sqrt(total)


@njit(cache=True, parallel=True)
def rk_stage_update(u: np.ndarray, ustage: np.ndarray, residual: np.ndarray,
                    area: np.ndarray, a0: float, a1: float, a2dt: float) -> None:
    """TVD-RK stage: ustage = a0 u + a1 ustage - a2 Δt / |Ω| R."""
    n, nvars = u.shape
    for i in prange(n):
        fac = a2dt / area[i]
        for k in range(nvars):
            ustage[i, k] = a0 * u[i, k] + a1 * ustage[i, k] - fac * residual[i, k]
