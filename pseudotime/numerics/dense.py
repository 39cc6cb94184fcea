"""
Dense Gaussian elimination for small local systems.

Used for the per-cell solves of the LU-SGS sweep and for inverting the
nvars × nvars blocks of the block preconditioners. The kernels are plain
Numba functions so that they can also be called from other kernels.
"""

import numpy as np
import numpy.typing as npt
from numba import njit, prange

NDArrayFloat = npt.NDArray[np.floating]


class SingularBlockError(ArithmeticError):
    """Raised when a dense block has a zero pivot."""
    pass


@njit(cache=True)
def _solve_dense(A: np.ndarray, b: np.ndarray, x: np.ndarray) -> bool:
    """Solve A x = b by Gaussian elimination with partial pivoting.

    A and b are left untouched. Returns False on a zero pivot.
    """
    n = b.shape[0]
    M = A.copy()
    r = b.copy()

    for k in range(n):
        # Pivot on the largest magnitude entry of column k
        piv = k
        big = abs(M[k, k])
        for i in range(k + 1, n):
            if abs(M[i, k]) > big:
                big = abs(M[i, k])
                piv = i
        if big == 0.0:
            return False
        if piv != k:
            for j in range(n):
                tmp = M[k, j]
                M[k, j] = M[piv, j]
                M[piv, j] = tmp
            tmp = r[k]
            r[k] = r[piv]
            r[piv] = tmp

        for i in range(k + 1, n):
            factor = M[i, k] / M[k, k]
            if factor != 0.0:
                for j in range(k, n):
                    M[i, j] -= factor * M[k, j]
                r[i] -= factor * r[k]

    for i in range(n - 1, -1, -1):
        s = r[i]
        for j in range(i + 1, n):
            s -= M[i, j] * x[j]
        x[i] = s / M[i, i]
    return True


@njit(cache=True)
def _invert_dense(A: np.ndarray, Ainv: np.ndarray) -> bool:
    """Invert A column by column. Returns False if A is singular."""
    n = A.shape[0]
    e = np.zeros(n)
    col = np.zeros(n)
    for j in range(n):
        e[:] = 0.0
        e[j] = 1.0
        if not _solve_dense(A, e, col):
            return False
        for i in range(n):
            Ainv[i, j] = col[i]
    return True


@njit(cache=True, parallel=True)
def _invert_blocks(blocks: np.ndarray, inv: np.ndarray) -> int:
    """Invert a stack of blocks in parallel; returns the number of singular blocks."""
    nblk = blocks.shape[0]
    failed = 0
    for b in prange(nblk):
        if not _invert_dense(blocks[b], inv[b]):
            failed += 1
    return failed


def gausselim(A: NDArrayFloat, b: NDArrayFloat) -> NDArrayFloat:
    """Solve the dense system A x = b.

    Parameters
    ----------
    A : ndarray (n, n)
    b : ndarray (n,)

    Returns
    -------
    x : ndarray (n,)

    Raises
    ------
    SingularBlockError
        If elimination meets a zero pivot.
    """
    A = np.ascontiguousarray(A, dtype=np.float64)
    b = np.ascontiguousarray(b, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1] or b.shape != (A.shape[0],):
        raise ValueError(f"Incompatible shapes for dense solve: A{A.shape}, b{b.shape}")
    x = np.zeros_like(b)
    if not _solve_dense(A, b, x):
        raise SingularBlockError("Zero pivot in dense Gaussian elimination")
    return x


def invert_blocks(blocks: NDArrayFloat) -> NDArrayFloat:
    """Invert every block of a (nblocks, n, n) stack."""
    blocks = np.ascontiguousarray(blocks, dtype=np.float64)
    inv = np.zeros_like(blocks)
    failed = _invert_blocks(blocks, inv)
    if failed > 0:
        raise SingularBlockError(f"{failed} singular block(s) could not be inverted")
    return inv
