"""
Shared machinery for the pseudo-time (steady-state) drivers.

A driver repeatedly calls the spatial operator, updates the state in place
and tracks the area-weighted residual norm of the last conserved variable,
normalised by its value at the first iteration. Subclasses provide one
iteration (:meth:`SteadySolver._iteration`); the loop, the convergence
bookkeeping, timers and log files live here.

Log files:
    <logfile>.conv   "<step> <relres>" per iteration, when ``lognres`` is set
    <logfile>        one run-summary line appended per solve
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import numba
import numpy as np
import numpy.typing as npt
from loguru import logger

from ..config.schema import SteadySolverConfig
from ..utils.timing import RunTimer

NDArrayFloat = npt.NDArray[np.floating]


@dataclass
class SolveReport:
    """Outcome of one ``solve`` call.

    Attributes
    ----------
    steps : int
        Iterations (or physical time steps) performed.
    converged : bool
        Relative residual reached the tolerance (always True for TVD-RK
        runs that reached the final time).
    relres : float
        Final relative residual.
    history : list of float
        Relative residual after every iteration.
    walltime, cputime : float
        Driver timers after the solve.
    threads : int
        Numba worker threads available to the per-cell kernels.
    linear_walltime, linear_cputime : float
        Time spent in the linear solver (implicit drivers only).
    avg_linear_iterations : float
        Mean linear iterations per nonlinear step (implicit drivers only).
    final_time : float, optional
        Physical time reached (TVD-RK only).
    """
    steps: int = 0
    converged: bool = False
    relres: float = 1.0
    history: List[float] = field(default_factory=list)
    walltime: float = 0.0
    cputime: float = 0.0
    threads: int = 1
    linear_walltime: float = 0.0
    linear_cputime: float = 0.0
    avg_linear_iterations: float = 0.0
    final_time: Optional[float] = None


def ramp_schedule(step: int, config: SteadySolverConfig) -> Tuple[float, int]:
    """CFL number and linear-iteration cap for a (0-based) iteration.

    Before ``rampstart`` the initial values are used, from ``rampend`` on the
    final ones, and in between both are interpolated linearly (the cap is
    truncated to an integer). With ``rampend <= rampstart`` the ramp is a
    step from the initial to the final values at ``rampstart``.
    """
    if step < config.rampstart:
        return config.cflinit, config.linmaxiterstart
    if step >= config.rampend or config.rampend <= config.rampstart:
        return config.cflfin, config.linmaxiterend

    span = config.rampend - config.rampstart
    frac = (step - config.rampstart) / span
    cfl = config.cflinit + (config.cflfin - config.cflinit) * frac
    linmaxiter = int(config.linmaxiterstart
                     + (config.linmaxiterend - config.linmaxiterstart) * frac)
    return cfl, linmaxiter


def append_line(path: str, line: str) -> None:
    """Append one line to a plain-text log file, creating its directory."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, 'a') as f:
        f.write(line + "\n")


def num_threads() -> int:
    return numba.get_num_threads()


class SteadySolver(ABC):
    """Base class for drivers that march a state to steady state in pseudo-time.

    Parameters
    ----------
    spatial : object
        Spatial operator with ``mesh``, ``nvars`` and
        ``compute_residual(u, residual, get_dt, dt_local)``.
    config : SteadySolverConfig
        Tolerance, iteration budget, CFL ramp and log settings.
    """

    name = "SteadySolver"
    progress_interval = 10

    def __init__(self, spatial, config: SteadySolverConfig) -> None:
        self.spatial = spatial
        self.config = config
        self.mesh = spatial.mesh
        self.nvars = spatial.nvars

        ncells = self.mesh.ncells
        self.residual = np.zeros((ncells, self.nvars))
        self.dt_local = np.zeros(ncells)
        self.timer = RunTimer()

    def _check_state(self, u: NDArrayFloat) -> None:
        expected = (self.mesh.ncells, self.nvars)
        if u.shape != expected:
            raise ValueError(f"{self.name}: state has shape {u.shape}, expected {expected}")

    def get_run_times(self) -> Tuple[float, float]:
        return self.timer.walltime, self.timer.cputime

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _begin_solve(self) -> None:
        """Called once before the first iteration of every solve."""
        pass

    @abstractmethod
    def _iteration(self, u: NDArrayFloat, step: int) -> float:
        """Advance ``u`` by one pseudo-time step; return the residual norm."""
        ...

    def _progress_detail(self) -> Optional[str]:
        """Extra text for progress lines."""
        return None

    def _finish_report(self, report: SolveReport) -> None:
        pass

    def _summary_line(self, report: SolveReport) -> str:
        return f"\t{report.threads}\t{report.walltime}\t{report.cputime}"

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def solve(self, u: NDArrayFloat) -> SolveReport:
        """Iterate until the relative residual drops to ``tol`` or ``maxiter`` is spent.

        ``u`` is updated in place and holds the last iterate on return.
        """
        self._check_state(u)
        cfg = self.config

        if cfg.maxiter <= 0:
            logger.info(f"{self.name}: no iterations to be done (maxiter={cfg.maxiter}).")
            return SolveReport(threads=num_threads(), walltime=self.timer.walltime,
                               cputime=self.timer.cputime)

        self._begin_solve()

        conv_path = cfg.logfile + ".conv"
        if cfg.lognres:
            Path(conv_path).parent.mkdir(parents=True, exist_ok=True)

        step = 0
        initres = 1.0
        relres = 1.0
        converged = False
        history = []

        self.timer.start()
        try:
            while step < cfg.maxiter:
                resi = self._iteration(u, step)

                if step == 0:
                    initres = resi
                relres = resi / initres if initres > 0.0 else 0.0
                history.append(relres)

                if step % self.progress_interval == 0:
                    logger.info(f"{self.name}: step {step:>6d}, rel residual {relres:.6e}")
                    detail = self._progress_detail()
                    if detail:
                        logger.info(f"    {detail}")

                step += 1
                if cfg.lognres:
                    append_line(conv_path, f"{step} {relres:10g}")

                if relres <= cfg.tol:
                    converged = True
                    break
        finally:
            self.timer.stop()

        report = SolveReport(
            steps=step,
            converged=converged,
            relres=relres,
            history=history,
            walltime=self.timer.walltime,
            cputime=self.timer.cputime,
            threads=num_threads(),
        )
        self._finish_report(report)

        if not converged:
            logger.warning(f"{self.name}: exceeded max iterations ({cfg.maxiter}), "
                           f"rel residual {relres:.6e}")
        logger.info(f"{self.name}: done, steps = {step}, rel residual {relres:.6e}")
        logger.info(f"{self.name}: wall time = {report.walltime:.3f} s, "
                    f"CPU time = {report.cputime:.3f} s")

        append_line(cfg.logfile, self._summary_line(report))
        return report
