"""Forward Euler pseudo-time stepping with local time steps."""

import numpy as np

from .base import SteadySolver
from ..constants import EXPLICIT_PRINT_FREQ
from ..numerics.kernels import explicit_update, residual_norm, zero_field


class SteadyForwardEulerSolver(SteadySolver):
    """Explicit pseudo-time driver.

    Each iteration evaluates R(u) and the local time steps, then updates

        u_i <- u_i - cflinit Δt_i / |Ω_i| R_i

    The CFL number is fixed at ``config.cflinit``; no ramp is applied.
    """

    name = "SteadyForwardEulerSolver"
    progress_interval = EXPLICIT_PRINT_FREQ

    def _iteration(self, u: np.ndarray, step: int) -> float:
        zero_field(self.residual)
        self.spatial.compute_residual(u, self.residual, True, self.dt_local)
        explicit_update(u, self.residual, self.dt_local, self.mesh.area, self.config.cflinit)
        return residual_norm(self.residual, self.mesh.area)
