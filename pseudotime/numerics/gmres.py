"""
GMRES(m) solver for the implicit pseudo-time system.

Implements restarted GMRES with:
- Configurable restart parameter (m)
- Left preconditioning support
- Modified Gram-Schmidt orthogonalization
- Givens rotations for the least-squares problem

Vectors are flat NumPy arrays; the matrix and the preconditioner are only
seen through callables, so the same routine serves assembled block
matrices and dense test operators.

Reference: Saad & Schultz (1986), "GMRES: A Generalized Minimal Residual
Algorithm for Solving Nonsymmetric Linear Systems"
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np
import numpy.typing as npt

NDArrayFloat = npt.NDArray[np.floating]

# Breakdown threshold for the Arnoldi vector norm
_BREAKDOWN = 1e-14


@dataclass
class GMRESResult:
    """Result of GMRES solve.

    Attributes
    ----------
    x : np.ndarray
        Solution vector.
    residual_norm : float
        Final (preconditioned) residual norm.
    converged : bool
        Whether the solver converged to tolerance.
    iterations : int
        Number of Arnoldi iterations performed.
    residual_history : list
        Residual norm at the start of every cycle and at the end.
    """
    x: NDArrayFloat
    residual_norm: float
    converged: bool
    iterations: int
    residual_history: List[float] = field(default_factory=list)


def gmres(
    matvec: Callable[[NDArrayFloat], NDArrayFloat],
    b: NDArrayFloat,
    x0: Optional[NDArrayFloat] = None,
    tol: float = 1e-6,
    restart: int = 20,
    maxiter: int = 100,
    preconditioner: Optional[Callable[[NDArrayFloat], NDArrayFloat]] = None,
) -> GMRESResult:
    """Solve Ax = b using restarted GMRES.

    Parameters
    ----------
    matvec : callable
        Matrix-vector product A @ v on flat arrays.
    b : np.ndarray
        Right-hand side vector.
    x0 : np.ndarray, optional
        Initial guess. Defaults to zeros.
    tol : float
        Relative tolerance: ||P^{-1}(b - Ax)|| < tol * ||P^{-1} b||.
    restart : int
        Number of iterations before restart (GMRES(m) parameter).
    maxiter : int
        Maximum total iterations across all restarts.
    preconditioner : callable, optional
        Left preconditioner P^{-1}.

    Returns
    -------
    GMRESResult
        Solution and convergence information.
    """
    shape = b.shape
    b = np.asarray(b, dtype=np.float64).ravel()
    n = b.size
    restart = max(1, int(restart))

    x = np.zeros(n) if x0 is None else np.array(x0, dtype=np.float64).ravel()

    def precond(v):
        return v if preconditioner is None else preconditioner(v)

    b_norm = np.linalg.norm(precond(b))
    if b_norm < 1e-30:
        return GMRESResult(x=np.zeros(n).reshape(shape), residual_norm=0.0,
                           converged=True, iterations=0, residual_history=[0.0])

    tol_abs = tol * b_norm
    residual_history = []
    total_iters = 0

    while total_iters < maxiter:
        r = precond(b - matvec(x))
        r_norm = np.linalg.norm(r)
        residual_history.append(float(r_norm))
        if r_norm < tol_abs:
            return GMRESResult(x=x.reshape(shape), residual_norm=float(r_norm),
                               converged=True, iterations=total_iters,
                               residual_history=residual_history)

        m = min(restart, maxiter - total_iters)
        dx, iters = _gmres_cycle(matvec, precond, r, r_norm, m, tol_abs)
        x = x + dx
        total_iters += iters

    r_norm = np.linalg.norm(precond(b - matvec(x)))
    residual_history.append(float(r_norm))
    return GMRESResult(x=x.reshape(shape), residual_norm=float(r_norm),
                       converged=bool(r_norm < tol_abs), iterations=total_iters,
                       residual_history=residual_history)


def _gmres_cycle(matvec, precond, r, r_norm, m, tol_abs) -> Tuple[NDArrayFloat, int]:
    """One Arnoldi cycle of at most m steps; returns the correction and step count."""
    n = r.size
    V = np.zeros((m + 1, n))
    H = np.zeros((m + 1, m))
    cs = np.zeros(m)
    sn = np.zeros(m)
    g = np.zeros(m + 1)

    V[0] = r / r_norm
    g[0] = r_norm
    iters = 0

    for j in range(m):
        w = precond(matvec(V[j]))
        H, w = _modified_gram_schmidt(H, V, w, j)

        h_next = np.linalg.norm(w)
        H[j + 1, j] = h_next
        if h_next > _BREAKDOWN:
            V[j + 1] = w / h_next

        # Apply previous rotations to the new column
        for i in range(j):
            temp = cs[i] * H[i, j] + sn[i] * H[i + 1, j]
            H[i + 1, j] = -sn[i] * H[i, j] + cs[i] * H[i + 1, j]
            H[i, j] = temp

        a, bb = H[j, j], H[j + 1, j]
        rho = np.hypot(a, bb)
        c = a / (rho + 1e-30)
        s = bb / (rho + 1e-30)
        cs[j], sn[j] = c, s
        H[j, j] = rho
        H[j + 1, j] = 0.0

        temp = c * g[j] + s * g[j + 1]
        g[j + 1] = -s * g[j] + c * g[j + 1]
        g[j] = temp

        iters = j + 1
        if abs(g[j + 1]) < tol_abs or h_next <= _BREAKDOWN:
            break

    y = _back_substitute(H[:iters, :iters], g[:iters])
    return V[:iters].T @ y, iters


def _modified_gram_schmidt(
    H: NDArrayFloat,
    V: NDArrayFloat,
    w: NDArrayFloat,
    j: int,
) -> Tuple[NDArrayFloat, NDArrayFloat]:
    """Orthogonalise w against V[0..j], storing the projections in column j of H."""
    for i in range(j + 1):
        h_ij = np.dot(w, V[i])
        H[i, j] = h_ij
        w = w - h_ij * V[i]
    return H, w


def _back_substitute(R: NDArrayFloat, b: NDArrayFloat) -> NDArrayFloat:
    """Solve upper triangular system Rx = b."""
    n = b.size
    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        s = b[i] - np.dot(R[i, i + 1:], x[i + 1:])
        x[i] = s / (R[i, i] + 1e-30)
    return x
