"""
Backward Euler pseudo-time stepping with an assembled Jacobian.

Each iteration solves

    (|Ω_i|/(CFL Δt_i) I + ∂R/∂U) du = -R(u),    u <- u + du

approximately with a preconditioned Krylov (or Richardson) solver, while
the CFL number and the linear-iteration cap follow a linear ramp.
"""

from typing import Optional

import numpy as np
from loguru import logger

from .base import SteadySolver, SolveReport, ramp_schedule
from ..config.schema import SteadySolverConfig
from ..constants import IMPLICIT_PRINT_FREQ
from ..numerics.block_matrix import BlockSparseMatrix
from ..numerics.kernels import apply_update, pseudo_time_diagonal, residual_norm, zero_field
from ..numerics.linear_solvers import make_linear_solver
from ..numerics.preconditioner import make_preconditioner


class SteadyBackwardEulerSolver(SteadySolver):
    """Implicit pseudo-time driver.

    Parameters
    ----------
    spatial : object
        Spatial operator; must also provide ``compute_jacobian(u, matrix)``,
        which adds ∂R/∂U into the matrix.
    config : SteadySolverConfig
    matrix : BlockSparseMatrix, optional
        System matrix. Built from the mesh adjacency when omitted.

    Raises
    ------
    ConfigurationError
        If ``config.strict_selection`` is set and the preconditioner or
        linear solver name is not recognised.
    """

    name = "SteadyBackwardEulerSolver"
    progress_interval = IMPLICIT_PRINT_FREQ

    def __init__(self, spatial, config: SteadySolverConfig,
                 matrix: Optional[BlockSparseMatrix] = None) -> None:
        super().__init__(spatial, config)
        if matrix is None:
            matrix = BlockSparseMatrix.from_mesh(self.mesh, self.nvars)
        if matrix.nrows != self.mesh.ncells or matrix.bs != self.nvars:
            raise ValueError(
                f"Matrix of {matrix.nrows} x {matrix.bs} blocks does not match "
                f"{self.mesh.ncells} cells with {self.nvars} variables"
            )
        self.matrix = matrix

        self.preconditioner = make_preconditioner(config.preconditioner, matrix,
                                                  strict=config.strict_selection)
        self.linsolv = make_linear_solver(config.linearsolver, matrix, self.preconditioner,
                                          restart=config.restart_vecs,
                                          strict=config.strict_selection)

        ncells = self.mesh.ncells
        self.du = np.zeros((ncells, self.nvars))
        self._diag = np.zeros(ncells)
        self._total_lin_iters = 0
        self._last = (config.cflinit, config.linmaxiterstart, 0)

    def _begin_solve(self) -> None:
        self.timer.reset()
        self.linsolv.reset_run_times()
        self.du[:] = 0.0
        self._total_lin_iters = 0

    def _iteration(self, u: np.ndarray, step: int) -> float:
        cfg = self.config
        zero_field(self.residual)
        self.matrix.set_all_zero()
        self.matrix.begin_assembly()

        self.spatial.compute_residual(u, self.residual, True, self.dt_local)
        self.spatial.compute_jacobian(u, self.matrix)

        cfl, linmaxiter = ramp_schedule(step, cfg)

        pseudo_time_diagonal(self.mesh.area, self.dt_local, cfl, self._diag)
        self.matrix.add_to_diagonal(self._diag)
        self.matrix.end_assembly()
        self.matrix.freeze_pattern()

        self.linsolv.setup_preconditioner()
        self.linsolv.set_params(cfg.lintol, linmaxiter)
        iters = self.linsolv.solve(-self.residual, self.du)
        self._total_lin_iters += iters
        self._last = (cfl, linmaxiter, iters)

        apply_update(u, self.du)
        return residual_norm(self.residual, self.mesh.area)

    def _progress_detail(self) -> str:
        cfl, linmaxiter, iters = self._last
        return f"CFL = {cfl:.4g}, lin max iters = {linmaxiter}, iters used = {iters}"

    def _finish_report(self, report: SolveReport) -> None:
        report.linear_walltime, report.linear_cputime = self.linsolv.get_run_times()
        report.avg_linear_iterations = self._total_lin_iters / max(report.steps, 1)
        logger.info(f"{self.name}: linear solver wall time = {report.linear_walltime:.3f} s, "
                    f"CPU time = {report.linear_cputime:.3f} s")
        logger.info(f"{self.name}: average linear iterations = "
                    f"{report.avg_linear_iterations:.2f}")

    def _summary_line(self, report: SolveReport) -> str:
        return (f"{self.mesh.ncells:>10d} {report.threads:>6d} "
                f"{report.linear_walltime:>10.6g} {report.linear_cputime:>10.6g} "
                f"{report.avg_linear_iterations:>10.4g} {report.steps:>10d}")
