"""
Preconditioned linear solvers for the assembled pseudo-time system M du = -R.

All solvers share one interface so the implicit driver never needs to know
which one it holds:

    setup_preconditioner()      refresh the preconditioner from the matrix
    set_params(tol, maxiter)    relative tolerance and iteration cap
    solve(rhs, x) -> int        solve in place, return iterations used
    reset_run_times()
    get_run_times() -> (wall, cpu)

Vectors are (ncells, nvars) arrays; Krylov internals work on flat views.
"""

from typing import Tuple

import numpy as np
import numpy.typing as npt
from loguru import logger

from .block_matrix import BlockSparseMatrix
from .gmres import gmres
from .preconditioner import Preconditioner
from ..config.schema import ConfigurationError
from ..utils.timing import RunTimer

NDArrayFloat = npt.NDArray[np.floating]


class LinearSolver:
    """Base class holding the matrix, the preconditioner and the run timers."""

    name = "richardson"

    def __init__(self, matrix: BlockSparseMatrix, preconditioner: Preconditioner) -> None:
        self.matrix = matrix
        self.preconditioner = preconditioner
        self.tol = 1e-2
        self.maxiter = 10
        self.timer = RunTimer()

    # -------------------------------------------------------------------------
    # Interface used by the implicit driver
    # -------------------------------------------------------------------------

    def setup_preconditioner(self) -> None:
        with self.timer:
            self.preconditioner.setup()

    def set_params(self, tol: float, maxiter: int) -> None:
        self.tol = float(tol)
        self.maxiter = int(maxiter)

    def solve(self, rhs: NDArrayFloat, x: NDArrayFloat) -> int:
        """Solve M x = rhs starting from the content of ``x``; returns iterations."""
        if rhs.shape != x.shape or rhs.shape != (self.matrix.nrows, self.matrix.bs):
            raise ValueError(
                f"Linear solve expects ({self.matrix.nrows}, {self.matrix.bs}) vectors, "
                f"got rhs{rhs.shape} and x{x.shape}"
            )
        with self.timer:
            iters = self._solve(rhs, x)
        logger.debug(f"{self.name}: {iters} iterations")
        return iters

    def reset_run_times(self) -> None:
        self.timer.reset()

    def get_run_times(self) -> Tuple[float, float]:
        return self.timer.walltime, self.timer.cputime

    # -------------------------------------------------------------------------
    # Flat-vector helpers
    # -------------------------------------------------------------------------

    def _shape(self) -> Tuple[int, int]:
        return self.matrix.nrows, self.matrix.bs

    def _matvec(self, v: NDArrayFloat) -> NDArrayFloat:
        y = np.zeros(self._shape())
        self.matrix.matvec(np.ascontiguousarray(v).reshape(self._shape()), y)
        return y.ravel()

    def _precond(self, v: NDArrayFloat) -> NDArrayFloat:
        z = np.zeros(self._shape())
        self.preconditioner.apply(np.ascontiguousarray(v).reshape(self._shape()), z)
        return z.ravel()

    def _solve(self, rhs: NDArrayFloat, x: NDArrayFloat) -> int:
        raise NotImplementedError


class RichardsonSolver(LinearSolver):
    """Preconditioned Richardson iteration x += P^{-1}(b - M x)."""

    name = "richardson"

    def _solve(self, rhs, x):
        b = rhs.ravel()
        xf = x.ravel().copy()
        b_norm = np.linalg.norm(b)
        if b_norm == 0.0:
            x[:] = 0.0
            return 0

        iters = 0
        for _ in range(self.maxiter):
            r = b - self._matvec(xf)
            if np.linalg.norm(r) <= self.tol * b_norm:
                break
            xf += self._precond(r)
            iters += 1

        x[:] = xf.reshape(x.shape)
        return iters


class BiCGSTABSolver(LinearSolver):
    """Right-preconditioned BiCGSTAB (van der Vorst, 1992)."""

    name = "bicgstab"

    def _solve(self, rhs, x):
        b = rhs.ravel()
        xf = x.ravel().copy()
        b_norm = np.linalg.norm(b)
        if b_norm == 0.0:
            x[:] = 0.0
            return 0
        tol_abs = self.tol * b_norm

        r = b - self._matvec(xf)
        if np.linalg.norm(r) <= tol_abs:
            return 0
        r_hat = r.copy()
        rho = alpha = omega = 1.0
        v = np.zeros_like(r)
        p = np.zeros_like(r)

        iters = 0
        while iters < self.maxiter:
            rho_new = np.dot(r_hat, r)
            if rho_new == 0.0:
                break
            beta = (rho_new / rho) * (alpha / omega)
            p = r + beta * (p - omega * v)
            p_hat = self._precond(p)
            v = self._matvec(p_hat)
            alpha = rho_new / np.dot(r_hat, v)
            s = r - alpha * v
            iters += 1

            if np.linalg.norm(s) <= tol_abs:
                xf += alpha * p_hat
                break

            s_hat = self._precond(s)
            t = self._matvec(s_hat)
            tt = np.dot(t, t)
            omega = np.dot(t, s) / tt if tt > 0.0 else 0.0
            xf += alpha * p_hat + omega * s_hat
            r = s - omega * t
            rho = rho_new

            if np.linalg.norm(r) <= tol_abs or omega == 0.0:
                break

        x[:] = xf.reshape(x.shape)
        return iters


class GMRESSolver(LinearSolver):
    """Left-preconditioned restarted GMRES(m)."""

    name = "gmres"

    def __init__(self, matrix: BlockSparseMatrix, preconditioner: Preconditioner,
                 restart: int = 30) -> None:
        super().__init__(matrix, preconditioner)
        self.restart = int(restart)

    def _solve(self, rhs, x):
        result = gmres(self._matvec, rhs.ravel(), x0=x.ravel(), tol=self.tol,
                       restart=self.restart, maxiter=self.maxiter,
                       preconditioner=self._precond)
        x[:] = result.x.reshape(x.shape)
        return result.iterations


LINEAR_SOLVERS = {
    'bcgstb': BiCGSTABSolver,
    'bicgstab': BiCGSTABSolver,
    'gmres': GMRESSolver,
    'richardson': RichardsonSolver,
}


def make_linear_solver(name: str, matrix: BlockSparseMatrix, preconditioner: Preconditioner,
                       restart: int = 30, strict: bool = False) -> LinearSolver:
    """Create a linear solver from its selector string.

    Recognised (case-insensitive): "BCGSTB"/"bicgstab", "GMRES", "richardson".
    Any other name selects Richardson iteration, unless ``strict`` is set,
    in which case a ConfigurationError is raised.
    """
    key = (name or "richardson").strip().lower()
    cls = LINEAR_SOLVERS.get(key)
    if cls is None:
        if strict:
            raise ConfigurationError(
                f"Unknown linear solver '{name}'. Expected one of BCGSTB, GMRES, richardson"
            )
        cls = RichardsonSolver

    if cls is GMRESSolver:
        logger.info(f"Selected GMRES linear solver ({restart} restart vectors).")
        return GMRESSolver(matrix, preconditioner, restart=restart)
    if cls is BiCGSTABSolver:
        logger.info("Selected BiCGSTAB linear solver.")
    else:
        logger.info("Selected Richardson linear solver.")
    return cls(matrix, preconditioner)
