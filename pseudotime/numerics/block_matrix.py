"""
Block sparse row (BSR) matrix for implicit pseudo-time systems.

One nvars × nvars block per (cell, neighbour) pair. Values are stored as a
(nnzb, bs, bs) array next to the usual CSR index arrays. The nonzero
pattern can be frozen after the first assembly; from then on assembly may
only overwrite existing blocks.
"""

from typing import Iterable, List, Tuple

import numpy as np
import numpy.typing as npt
import scipy.sparse as sp
from numba import njit, prange

NDArrayFloat = npt.NDArray[np.floating]


class MatrixAssemblyError(RuntimeError):
    """Raised when assembly violates the matrix state or its frozen pattern."""
    pass


@njit(cache=True, parallel=True)
def _bsr_matvec(row_ptr, col_ind, vals, x, y):
    """y = A x for a block CSR matrix; x, y have shape (nrows, bs)."""
    nrows = row_ptr.shape[0] - 1
    bs = vals.shape[1]
    for i in prange(nrows):
        for k in range(bs):
            y[i, k] = 0.0
        for jj in range(row_ptr[i], row_ptr[i + 1]):
            j = col_ind[jj]
            for k in range(bs):
                s = 0.0
                for l in range(bs):
                    s += vals[jj, k, l] * x[j, l]
                y[i, k] += s


class BlockSparseMatrix:
    """Square block-CSR matrix with ``nrows`` block rows of size ``bs``.

    Parameters
    ----------
    nrows : int
        Number of block rows (cells).
    bs : int
        Block size (number of conserved variables).
    pattern : iterable of (row, col)
        Initial block positions. Diagonal blocks are always included.
    """

    def __init__(self, nrows: int, bs: int, pattern: Iterable[Tuple[int, int]] = ()) -> None:
        if nrows < 1 or bs < 1:
            raise ValueError(f"Invalid block matrix size: nrows={nrows}, bs={bs}")
        self.nrows = nrows
        self.bs = bs
        self._frozen = False
        self._assembled = False
        positions = set((i, i) for i in range(nrows))
        for i, j in pattern:
            self._check_position(i, j)
            positions.add((int(i), int(j)))
        self._build_pattern(sorted(positions), np.zeros((0, bs, bs)), {})

    @classmethod
    def from_mesh(cls, mesh, bs: int) -> "BlockSparseMatrix":
        """Pattern with one block per cell and one per face neighbour."""
        return cls(mesh.ncells, bs, mesh.adjacency())

    def _check_position(self, i: int, j: int) -> None:
        if not (0 <= i < self.nrows and 0 <= j < self.nrows):
            raise MatrixAssemblyError(f"Block ({i}, {j}) outside a {self.nrows} x {self.nrows} block matrix")

    def _build_pattern(self, positions: List[Tuple[int, int]], old_vals: np.ndarray,
                       old_index: dict) -> None:
        nnzb = len(positions)
        self.row_ptr = np.zeros(self.nrows + 1, dtype=np.int64)
        self.col_ind = np.zeros(nnzb, dtype=np.int64)
        self.vals = np.zeros((nnzb, self.bs, self.bs))
        self._index = {}
        for k, (i, j) in enumerate(positions):
            self.row_ptr[i + 1] += 1
            self.col_ind[k] = j
            self._index[(i, j)] = k
            if (i, j) in old_index:
                self.vals[k] = old_vals[old_index[(i, j)]]
        self.row_ptr = np.cumsum(self.row_ptr)
        self.diag_ind = np.array([self._index[(i, i)] for i in range(self.nrows)], dtype=np.int64)

    # -------------------------------------------------------------------------
    # Assembly
    # -------------------------------------------------------------------------

    @property
    def nnzb(self) -> int:
        return self.col_ind.shape[0]

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def assembled(self) -> bool:
        return self._assembled

    def set_all_zero(self) -> None:
        """Zero every stored block, keeping the pattern."""
        self.vals[:] = 0.0
        self._assembled = False

    def begin_assembly(self) -> None:
        self._assembled = False

    def end_assembly(self) -> None:
        self._assembled = True

    def freeze_pattern(self) -> None:
        """Forbid new nonzero block locations from now on."""
        self._frozen = True

    def _insert_positions(self, positions: Iterable[Tuple[int, int]]) -> None:
        """Add missing block positions to the pattern with a single rebuild."""
        new = set()
        for i, j in positions:
            if (i, j) in self._index:
                continue
            self._check_position(i, j)
            if self._frozen:
                raise MatrixAssemblyError(
                    f"New nonzero block ({i}, {j}) after the sparsity pattern was frozen"
                )
            new.add((i, j))
        if new:
            # Rebuilding renumbers blocks, so indices are only valid afterwards
            merged = sorted(list(self._index.keys()) + list(new))
            self._build_pattern(merged, self.vals, dict(self._index))

    def add_block(self, i: int, j: int, block: NDArrayFloat) -> None:
        """Accumulate a bs × bs block at block position (i, j)."""
        i, j = int(i), int(j)
        self._insert_positions([(i, j)])
        self.vals[self._index[(i, j)]] += block
        self._assembled = False

    def add_blocks(self, rows, cols, blocks: NDArrayFloat) -> None:
        """Accumulate many blocks; repeated positions are summed."""
        positions = [(int(i), int(j)) for i, j in zip(rows, cols)]
        self._insert_positions(positions)
        idx = np.array([self._index[p] for p in positions], dtype=np.int64)
        np.add.at(self.vals, idx, np.asarray(blocks, dtype=np.float64))
        self._assembled = False

    def update_diag_block(self, cell: int, block: NDArrayFloat) -> None:
        """Add ``block`` to the diagonal block of ``cell``."""
        self.vals[self.diag_ind[cell]] += block
        self._assembled = False

    def add_to_diagonal(self, values: NDArrayFloat) -> None:
        """Add values[i] to every diagonal entry of diagonal block i."""
        d = self.vals[self.diag_ind]
        idx = np.arange(self.bs)
        d[:, idx, idx] += values[:, None]
        self.vals[self.diag_ind] = d
        self._assembled = False

    # -------------------------------------------------------------------------
    # Use
    # -------------------------------------------------------------------------

    def matvec(self, x: NDArrayFloat, y: NDArrayFloat) -> None:
        """y = A x with x, y of shape (nrows, bs)."""
        _bsr_matvec(self.row_ptr, self.col_ind, self.vals, x, y)

    def dot(self, x: NDArrayFloat) -> NDArrayFloat:
        y = np.zeros((self.nrows, self.bs))
        self.matvec(np.ascontiguousarray(x, dtype=np.float64).reshape(self.nrows, self.bs), y)
        return y

    def get_block(self, i: int, j: int) -> NDArrayFloat:
        k = self._index.get((i, j))
        if k is None:
            return np.zeros((self.bs, self.bs))
        return self.vals[k].copy()

    def diagonal_blocks(self) -> NDArrayFloat:
        return self.vals[self.diag_ind].copy()

    def to_scipy(self) -> sp.bsr_matrix:
        n = self.nrows * self.bs
        return sp.bsr_matrix((self.vals.copy(), self.col_ind.copy(), self.row_ptr.copy()),
                             shape=(n, n))

    def to_dense(self) -> NDArrayFloat:
        return self.to_scipy().toarray()

    def __repr__(self) -> str:
        return (f"BlockSparseMatrix(nrows={self.nrows}, bs={self.bs}, nnzb={self.nnzb}, "
                f"frozen={self._frozen})")
