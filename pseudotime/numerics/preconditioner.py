"""
Block preconditioners for the implicit pseudo-time system.

All preconditioners act on the block sparse matrix

    M = |Ω|/(CFL·Δt) · I + ∂R/∂U

and approximate M^{-1} with nvars × nvars block operations:

    NoPreconditioner  z = r
    BlockJacobi       z = D^{-1} r
    BlockSGS          z = (D+U)^{-1} D (D+L)^{-1} r
    BlockILU0         z = U^{-1} L^{-1} r, with L U ≈ M on the pattern of M

SGS and ILU(0) sweeps are inherently sequential and run as serial Numba
kernels; Jacobi is parallel over cells.
"""

from typing import Optional

import numpy as np
import numpy.typing as npt
from loguru import logger
from numba import njit, prange

from .block_matrix import BlockSparseMatrix, MatrixAssemblyError
from .dense import _invert_dense, invert_blocks, SingularBlockError
from ..config.schema import ConfigurationError

NDArrayFloat = npt.NDArray[np.floating]


# =============================================================================
# Numba kernels
# =============================================================================

@njit(cache=True)
def _block_matvec_sub(A: np.ndarray, x: np.ndarray, out: np.ndarray) -> None:
    """out -= A @ x for one block."""
    bs = A.shape[0]
    for k in range(bs):
        s = 0.0
        for l in range(bs):
            s += A[k, l] * x[l]
        out[k] -= s


@njit(cache=True)
def _block_matvec(A: np.ndarray, x: np.ndarray, out: np.ndarray) -> None:
    """out = A @ x for one block."""
    bs = A.shape[0]
    for k in range(bs):
        s = 0.0
        for l in range(bs):
            s += A[k, l] * x[l]
        out[k] = s


@njit(cache=True, parallel=True)
def _apply_block_diagonal(dinv: np.ndarray, r: np.ndarray, z: np.ndarray) -> None:
    n = r.shape[0]
    for i in prange(n):
        _block_matvec(dinv[i], r[i], z[i])


@njit(cache=True)
def _sgs_apply(row_ptr, col_ind, diag_ind, vals, dinv, r, z):
    """Symmetric block Gauss-Seidel: forward (D+L) y = r, backward (D+U) z = D y."""
    n = r.shape[0]
    bs = r.shape[1]
    acc = np.zeros(bs)
    y = np.zeros((n, bs))

    for i in range(n):
        for k in range(bs):
            acc[k] = r[i, k]
        for jj in range(row_ptr[i], diag_ind[i]):
            _block_matvec_sub(vals[jj], y[col_ind[jj]], acc)
        _block_matvec(dinv[i], acc, y[i])

    for i in range(n - 1, -1, -1):
        for k in range(bs):
            acc[k] = 0.0
        for jj in range(diag_ind[i] + 1, row_ptr[i + 1]):
            _block_matvec_sub(vals[jj], z[col_ind[jj]], acc)
        _block_matvec(dinv[i], acc, z[i])
        for k in range(bs):
            z[i, k] += y[i, k]


@njit(cache=True)
def _ilu0_factor(row_ptr, col_ind, diag_ind, lu, uinv) -> bool:
    """In-place block ILU(0) on the pattern of ``lu``; stores inverses of U's diagonal."""
    n = row_ptr.shape[0] - 1
    bs = lu.shape[1]
    tmp = np.zeros((bs, bs))

    for i in range(n):
        for kk in range(row_ptr[i], diag_ind[i]):
            k = col_ind[kk]
            # L_ik = A_ik U_kk^{-1}
            for a in range(bs):
                for b in range(bs):
                    s = 0.0
                    for c in range(bs):
                        s += lu[kk, a, c] * uinv[k, c, b]
                    tmp[a, b] = s
            for a in range(bs):
                for b in range(bs):
                    lu[kk, a, b] = tmp[a, b]

            # A_ij -= L_ik U_kj for j > k present in both rows
            p = kk + 1
            for kj in range(diag_ind[k] + 1, row_ptr[k + 1]):
                j = col_ind[kj]
                while p < row_ptr[i + 1] and col_ind[p] < j:
                    p += 1
                if p < row_ptr[i + 1] and col_ind[p] == j:
                    for a in range(bs):
                        for b in range(bs):
                            s = 0.0
                            for c in range(bs):
                                s += lu[kk, a, c] * lu[kj, c, b]
                            lu[p, a, b] -= s

        if not _invert_dense(lu[diag_ind[i]], uinv[i]):
            return False
    return True


@njit(cache=True)
def _ilu0_apply(row_ptr, col_ind, diag_ind, lu, uinv, r, z):
    """Forward solve with unit block-lower L, backward solve with block-upper U."""
    n = r.shape[0]
    bs = r.shape[1]
    acc = np.zeros(bs)
    y = np.zeros((n, bs))

    for i in range(n):
        for k in range(bs):
            y[i, k] = r[i, k]
        for jj in range(row_ptr[i], diag_ind[i]):
            _block_matvec_sub(lu[jj], y[col_ind[jj]], y[i])

    for i in range(n - 1, -1, -1):
        for k in range(bs):
            acc[k] = y[i, k]
        for jj in range(diag_ind[i] + 1, row_ptr[i + 1]):
            _block_matvec_sub(lu[jj], z[col_ind[jj]], acc)
        _block_matvec(uinv[i], acc, z[i])


# =============================================================================
# Preconditioner classes
# =============================================================================

class Preconditioner:
    """Base class: ``setup()`` from the current matrix values, ``apply(r, z)`` sets z = P^{-1} r."""

    name = "none"

    def __init__(self, matrix: BlockSparseMatrix) -> None:
        self.matrix = matrix

    def _check_assembled(self) -> None:
        if not self.matrix.assembled:
            raise MatrixAssemblyError("Preconditioner setup requires an assembled matrix")

    def setup(self) -> None:
        self._check_assembled()

    def apply(self, r: NDArrayFloat, z: NDArrayFloat) -> None:
        raise NotImplementedError


class NoPreconditioner(Preconditioner):
    """Identity preconditioner."""

    name = "none"

    def apply(self, r: NDArrayFloat, z: NDArrayFloat) -> None:
        z[:] = r


class BlockJacobi(Preconditioner):
    """Inverse of the diagonal blocks."""

    name = "jacobi"

    def __init__(self, matrix: BlockSparseMatrix) -> None:
        super().__init__(matrix)
        self.dinv: Optional[NDArrayFloat] = None

    def setup(self) -> None:
        self._check_assembled()
        self.dinv = invert_blocks(self.matrix.diagonal_blocks())

    def apply(self, r: NDArrayFloat, z: NDArrayFloat) -> None:
        _apply_block_diagonal(self.dinv, r, z)


class BlockSGS(Preconditioner):
    """One symmetric block Gauss-Seidel sweep."""

    name = "sgs"

    def __init__(self, matrix: BlockSparseMatrix) -> None:
        super().__init__(matrix)
        self.dinv: Optional[NDArrayFloat] = None

    def setup(self) -> None:
        self._check_assembled()
        self.dinv = invert_blocks(self.matrix.diagonal_blocks())

    def apply(self, r: NDArrayFloat, z: NDArrayFloat) -> None:
        m = self.matrix
        _sgs_apply(m.row_ptr, m.col_ind, m.diag_ind, m.vals, self.dinv, r, z)


class BlockILU0(Preconditioner):
    """Block incomplete LU factorisation with zero fill-in."""

    name = "ilu0"

    def __init__(self, matrix: BlockSparseMatrix) -> None:
        super().__init__(matrix)
        self.lu: Optional[NDArrayFloat] = None
        self.uinv: Optional[NDArrayFloat] = None

    def setup(self) -> None:
        self._check_assembled()
        m = self.matrix
        self.lu = m.vals.copy()
        self.uinv = np.zeros((m.nrows, m.bs, m.bs))
        if not _ilu0_factor(m.row_ptr, m.col_ind, m.diag_ind, self.lu, self.uinv):
            raise SingularBlockError("Zero pivot block in ILU(0) factorization")

    def apply(self, r: NDArrayFloat, z: NDArrayFloat) -> None:
        m = self.matrix
        _ilu0_apply(m.row_ptr, m.col_ind, m.diag_ind, self.lu, self.uinv, r, z)


PRECONDITIONERS = {
    'j': BlockJacobi,
    'jacobi': BlockJacobi,
    'sgs': BlockSGS,
    'ilu0': BlockILU0,
    'none': NoPreconditioner,
}


def make_preconditioner(name: str, matrix: BlockSparseMatrix,
                        strict: bool = False) -> Preconditioner:
    """Create a preconditioner from its selector string.

    Recognised (case-insensitive): "J"/"jacobi", "SGS", "ILU0", "none".
    Any other name selects no preconditioning, unless ``strict`` is set,
    in which case a ConfigurationError is raised.
    """
    key = (name or "none").strip().lower()
    cls = PRECONDITIONERS.get(key)
    if cls is None:
        if strict:
            raise ConfigurationError(
                f"Unknown preconditioner '{name}'. Expected one of J, SGS, ILU0, none"
            )
        cls = NoPreconditioner

    if cls is NoPreconditioner:
        logger.info("No preconditioning will be applied.")
    else:
        logger.info(f"Selected {cls.name.upper()} preconditioner.")
    return cls(matrix)
