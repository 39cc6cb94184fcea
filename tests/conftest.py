"""
Shared pytest fixtures for the test suite.

This module provides small meshes and synthetic spatial operators whose
residuals and Jacobians are known in closed form, so that the drivers can
be checked without the finite volume operator in the loop.
"""

import pytest
import numpy as np
from loguru import logger

from pseudotime.config import SteadySolverConfig
from pseudotime.grid import UnstructuredMesh, rectangular_mesh


# =============================================================================
# Synthetic spatial operators
# =============================================================================

class LinearSpatial:
    """R(u) = K u - b with a constant local time step.

    K is a dense (ncells*nvars)² matrix; ``compute_jacobian`` adds its
    nonzero blocks, so the exact Newton update is known.
    """

    def __init__(self, mesh, K, b, nvars=1, dt=1.0):
        self.mesh = mesh
        self.nvars = nvars
        self.K = np.asarray(K, dtype=np.float64)
        self.b = np.asarray(b, dtype=np.float64).reshape(mesh.ncells, nvars)
        self.dt = dt
        self.residual_calls = 0
        self.jacobian_calls = 0

    def compute_residual(self, u, residual, get_dt, dt_local):
        self.residual_calls += 1
        residual[:] = (self.K @ u.ravel()).reshape(u.shape) - self.b
        if get_dt:
            dt_local[:] = self.dt

    def compute_jacobian(self, u, matrix):
        self.jacobian_calls += 1
        bs = self.nvars
        n = self.mesh.ncells
        for i in range(n):
            for j in range(n):
                block = self.K[i*bs:(i+1)*bs, j*bs:(j+1)*bs]
                if np.any(block != 0.0):
                    matrix.add_block(i, j, block)

    def exact_solution(self):
        return np.linalg.solve(self.K, self.b.ravel()).reshape(self.b.shape)


class ConstantSpatial:
    """R(u) = r regardless of the state."""

    def __init__(self, mesh, r, dt=1.0):
        self.mesh = mesh
        self.r = np.atleast_2d(np.asarray(r, dtype=np.float64))
        self.nvars = self.r.shape[1]
        self.dt = dt
        self.residual_calls = 0

    def compute_residual(self, u, residual, get_dt, dt_local):
        self.residual_calls += 1
        residual[:] = self.r
        if get_dt:
            dt_local[:] = self.dt

    def compute_jacobian(self, u, matrix):
        pass


def chain_matrix(ncells, diag_block, off_block):
    """Dense block-tridiagonal matrix for a 1D chain of cells."""
    diag_block = np.atleast_2d(diag_block)
    off_block = np.atleast_2d(off_block)
    bs = diag_block.shape[0]
    K = np.zeros((ncells * bs, ncells * bs))
    for i in range(ncells):
        K[i*bs:(i+1)*bs, i*bs:(i+1)*bs] = diag_block
        if i > 0:
            K[i*bs:(i+1)*bs, (i-1)*bs:i*bs] = off_block
        if i < ncells - 1:
            K[i*bs:(i+1)*bs, (i+1)*bs:(i+2)*bs] = off_block
    return K


# =============================================================================
# Mesh fixtures
# =============================================================================

@pytest.fixture
def single_cell_mesh():
    """One unit cell without faces."""
    return UnstructuredMesh(
        area=[1.0],
        face_left=np.zeros(0, dtype=np.int64),
        face_right=np.zeros(0, dtype=np.int64),
        face_normal=np.zeros((0, 2)),
        face_length=np.zeros(0),
    )


@pytest.fixture
def chain_mesh():
    """Six unit cells in a row (cell i touches i-1 and i+1)."""
    return rectangular_mesh(6, 1, lx=6.0, ly=1.0)


@pytest.fixture
def small_mesh():
    """4 x 3 rectangular mesh on [0, 2] x [0, 1]."""
    return rectangular_mesh(4, 3, lx=2.0, ly=1.0)


# =============================================================================
# Operator fixtures
# =============================================================================

@pytest.fixture
def scalar_linear_spatial(chain_mesh):
    """Diagonally dominant scalar operator K = tridiag(-0.5, 2, -0.5)."""
    n = chain_mesh.ncells
    K = chain_matrix(n, 2.0, -0.5)
    b = np.linspace(1.0, 2.0, n)
    return LinearSpatial(chain_mesh, K, b, nvars=1)


@pytest.fixture
def block_linear_spatial(chain_mesh):
    """Two-variable block-tridiagonal operator with coupled diagonal blocks."""
    n = chain_mesh.ncells
    K = chain_matrix(n, [[2.5, 0.3], [0.1, 2.0]], -0.5 * np.eye(2))
    b = np.column_stack([np.linspace(1.0, 2.0, n), np.cos(np.arange(n))])
    return LinearSpatial(chain_mesh, K, b, nvars=2)


@pytest.fixture
def make_chain_matrix():
    """Factory for dense block-tridiagonal chain matrices."""
    return chain_matrix


@pytest.fixture
def make_constant_spatial():
    """Factory for operators with a state-independent residual."""
    return ConstantSpatial


@pytest.fixture
def make_linear_spatial():
    """Factory for linear operators R(u) = K u - b."""
    return LinearSpatial


@pytest.fixture
def steady_config(tmp_path):
    """Steady settings writing their logs to a temporary directory."""
    return SteadySolverConfig(logfile=str(tmp_path / "steady.log"))


# =============================================================================
# Log capture
# =============================================================================

@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
