"""
Total-variation-diminishing Runge-Kutta time integration (Shu & Osher, 1988).

Stage update, with u the state at the start of the time step:

    u^(s) = a0 u + a1 u^(s-1) - a2 Δt / |Ω| R(u^(s-1))

Every stage refreshes the residual and the local time steps. The global time
step Δt = CFL · min_i Δt_i is taken from the first stage and held for the
remaining stages.
"""

import numpy as np
from loguru import logger

from .base import SolveReport, append_line, num_threads
from ..config.schema import ConfigurationError
from ..constants import A_SMALL_NUMBER, UNSTEADY_PRINT_FREQ
from ..numerics.kernels import rk_stage_update, zero_field
from ..utils.timing import RunTimer


def tvdrk_coefficients(order: int) -> np.ndarray:
    """Stage table of shape (order, 3) with rows (a0, a1, a2).

    Raises
    ------
    ConfigurationError
        For orders other than 1, 2 and 3.
    """
    if order == 1:
        rows = [[1.0, 0.0, 1.0]]
    elif order == 2:
        rows = [[1.0, 0.0, 1.0],
                [0.5, 0.5, 0.5]]
    elif order == 3:
        rows = [[1.0, 0.0, 1.0],
                [0.75, 0.25, 0.25],
                [1.0 / 3.0, 2.0 / 3.0, 2.0 / 3.0]]
    else:
        raise ConfigurationError(f"TVD-RK order {order} is not supported (use 1, 2 or 3)")
    table = np.array(rows)
    table.flags.writeable = False
    return table


class TVDRKSolver:
    """Explicit multistage driver for unsteady problems.

    Parameters
    ----------
    spatial : object
        Spatial operator with ``mesh``, ``nvars`` and ``compute_residual``.
    u : ndarray (ncells, nvars)
        Solution, advanced in place by :meth:`solve`.
    order : int
        Temporal order, 1 to 3.
    cfl : float
        Courant number applied to the smallest local time step.
    logfile : str
        Run-summary file; one line is appended per solve.
    """

    name = "TVDRKSolver"
    progress_interval = UNSTEADY_PRINT_FREQ

    def __init__(self, spatial, u: np.ndarray, order: int = 3, cfl: float = 0.5,
                 logfile: str = "output/unsteady.log") -> None:
        self.coeffs = tvdrk_coefficients(order)
        self.order = order
        self.spatial = spatial
        self.mesh = spatial.mesh
        self.nvars = spatial.nvars

        expected = (self.mesh.ncells, self.nvars)
        if u.shape != expected:
            raise ValueError(f"{self.name}: state has shape {u.shape}, expected {expected}")
        self.u = u
        self.cfl = cfl
        self.logfile = logfile

        self.residual = np.zeros(expected)
        self.dt_local = np.zeros(self.mesh.ncells)
        self.timer = RunTimer()

    def get_run_times(self):
        return self.timer.walltime, self.timer.cputime

    def solve(self, final_time: float) -> SolveReport:
        """Advance ``u`` from t = 0 to ``final_time``."""
        u = self.u
        area = self.mesh.area
        ustage = u.copy()

        step = 0
        time = 0.0
        dt = 0.0

        self.timer.start()
        try:
            while time <= final_time - A_SMALL_NUMBER:
                ustage[:] = u
                for istage in range(self.order):
                    a0, a1, a2 = self.coeffs[istage]
                    zero_field(self.residual)
                    self.spatial.compute_residual(ustage, self.residual, True, self.dt_local)
                    if istage == 0:
                        dt = min(self.cfl * float(self.dt_local.min()), final_time - time)
                    rk_stage_update(u, ustage, self.residual, area, a0, a1, a2 * dt)

                u[:] = ustage

                if step % self.progress_interval == 0:
                    logger.info(f"{self.name}: step {step:>6d}, time {time:.6e}")

                step += 1
                time += dt
        finally:
            self.timer.stop()

        report = SolveReport(
            steps=step,
            converged=True,
            relres=0.0,
            walltime=self.timer.walltime,
            cputime=self.timer.cputime,
            threads=num_threads(),
            final_time=time,
        )
        logger.info(f"{self.name}: done, steps = {step}, time = {time:.6e}")
        logger.info(f"{self.name}: wall time = {report.walltime:.3f} s, "
                    f"CPU time = {report.cputime:.3f} s")

        append_line(self.logfile, f"\t{report.threads}\t{report.walltime}\t{report.cputime}")
        return report
