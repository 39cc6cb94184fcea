"""
Numerical building blocks for the pseudo-time drivers.

This module provides:
- Dense Gaussian elimination for small local systems
- Block sparse matrix with a freezable pattern
- Block preconditioners (Jacobi, SGS, ILU(0)) and Krylov solvers
- Matrix-free LU-SGS sweep
- First-order finite volume reference operator
"""

from .dense import (
    gausselim,
    invert_blocks,
    SingularBlockError,
)

from .block_matrix import (
    BlockSparseMatrix,
    MatrixAssemblyError,
)

from .preconditioner import (
    Preconditioner,
    NoPreconditioner,
    BlockJacobi,
    BlockSGS,
    BlockILU0,
    make_preconditioner,
)

from .gmres import (
    gmres,
    GMRESResult,
)

from .linear_solvers import (
    LinearSolver,
    RichardsonSolver,
    BiCGSTABSolver,
    GMRESSolver,
    make_linear_solver,
)

from .lusgs import (
    LUSGSSolver,
    lusgs_diagonal_blocks,
)

from .spatial import FiniteVolumeSpatial

__all__ = [
    # Dense micro-solve
    'gausselim',
    'invert_blocks',
    'SingularBlockError',
    # Block matrix
    'BlockSparseMatrix',
    'MatrixAssemblyError',
    # Preconditioners
    'Preconditioner',
    'NoPreconditioner',
    'BlockJacobi',
    'BlockSGS',
    'BlockILU0',
    'make_preconditioner',
    # Linear solvers
    'gmres',
    'GMRESResult',
    'LinearSolver',
    'RichardsonSolver',
    'BiCGSTABSolver',
    'GMRESSolver',
    'make_linear_solver',
    # LU-SGS
    'LUSGSSolver',
    'lusgs_diagonal_blocks',
    # Spatial operator
    'FiniteVolumeSpatial',
]
