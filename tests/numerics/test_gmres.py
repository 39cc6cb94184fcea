"""
Tests for GMRES(m) solver.

Tests cover:
1. Simple linear systems (identity, diagonal, dense)
2. Convergence on known problems
3. Preconditioner application
4. Restart behavior
5. Helper routines (Gram-Schmidt, back substitution)
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from pseudotime.numerics.gmres import (
    gmres,
    GMRESResult,
    _back_substitute,
    _modified_gram_schmidt,
)


# =============================================================================
# Test fixtures
# =============================================================================

@pytest.fixture
def identity_system():
    """Identity matrix system: Ix = b."""
    n = 10
    A = np.eye(n)
    b = np.ones(n)
    x_true = b.copy()

    def matvec(v):
        return A @ v

    return matvec, b, x_true


@pytest.fixture
def diagonal_system():
    """Diagonal matrix system."""
    n = 20
    diag = np.arange(1, n + 1, dtype=np.float64)
    b = np.ones(n)
    x_true = b / diag

    def matvec(v):
        return diag * v

    return matvec, b, x_true


@pytest.fixture
def tridiagonal_system():
    """Tridiagonal matrix system (more challenging)."""
    n = 30
    A = (np.diag(np.full(n, 2.0)) + np.diag(np.full(n - 1, -1.0), 1)
         + np.diag(np.full(n - 1, -1.0), -1))
    b = np.ones(n)
    x_true = np.linalg.solve(A, b)

    def matvec(v):
        return A @ v

    return matvec, b, x_true


@pytest.fixture
def nonsymmetric_system():
    """Upwind-like nonsymmetric system."""
    n = 25
    A = np.diag(np.full(n, 1.5)) + np.diag(np.full(n - 1, -1.0), -1) + np.diag(np.full(n - 1, 0.2), 1)
    b = np.sin(np.arange(n) + 1.0)
    x_true = np.linalg.solve(A, b)

    def matvec(v):
        return A @ v

    return matvec, b, x_true


@pytest.fixture
def ill_conditioned_system():
    """Ill-conditioned system that benefits from preconditioning."""
    n = 20
    diag = np.array([10.0**(-i/4) for i in range(n)])
    b = np.ones(n)
    x_true = b / diag

    def matvec(v):
        return diag * v

    # Jacobi preconditioner
    def precond(v):
        return v / diag

    return matvec, b, x_true, precond


# =============================================================================
# Basic functionality tests
# =============================================================================

class TestGMRESBasic:
    """Test basic GMRES functionality."""

    def test_identity_system(self, identity_system):
        matvec, b, x_true = identity_system

        result = gmres(matvec, b, tol=1e-10)

        assert isinstance(result, GMRESResult)
        assert result.converged
        assert result.iterations <= 2
        assert_allclose(result.x, x_true, atol=1e-10)

    def test_diagonal_system(self, diagonal_system):
        matvec, b, x_true = diagonal_system

        result = gmres(matvec, b, tol=1e-10)

        assert result.converged
        assert_allclose(result.x, x_true, rtol=1e-8)

    def test_tridiagonal_system(self, tridiagonal_system):
        matvec, b, x_true = tridiagonal_system

        result = gmres(matvec, b, tol=1e-10, restart=30, maxiter=50)

        assert result.converged
        assert_allclose(result.x, x_true, rtol=1e-6)

    def test_nonsymmetric_system(self, nonsymmetric_system):
        matvec, b, x_true = nonsymmetric_system

        result = gmres(matvec, b, tol=1e-12, restart=25, maxiter=50)

        assert result.converged
        assert_allclose(result.x, x_true, rtol=1e-8, atol=1e-10)

    def test_zero_rhs(self, identity_system):
        matvec, _, _ = identity_system

        result = gmres(matvec, np.zeros(10), tol=1e-10)

        assert result.converged
        assert result.iterations == 0
        assert_allclose(result.x, np.zeros(10), atol=1e-10)

    def test_initial_guess(self, diagonal_system):
        matvec, b, x_true = diagonal_system

        x0 = x_true + 0.01 * np.ones_like(x_true)
        result = gmres(matvec, b, x0=x0, tol=1e-10)

        assert result.converged
        assert_allclose(result.x, x_true, rtol=1e-8)

    def test_shape_preserved(self, diagonal_system):
        """2D right-hand sides come back in their own shape."""
        matvec, b, x_true = diagonal_system

        result = gmres(lambda v: matvec(v.ravel()), b.reshape(10, 2), tol=1e-10)

        assert result.x.shape == (10, 2)
        assert_allclose(result.x.ravel(), x_true, rtol=1e-8)


class TestGMRESRestart:
    """Test GMRES restart behavior."""

    def test_restart_matches_no_restart(self, tridiagonal_system):
        matvec, b, x_true = tridiagonal_system

        result_full = gmres(matvec, b, tol=1e-10, restart=30, maxiter=50)
        result_restart = gmres(matvec, b, tol=1e-8, restart=10, maxiter=500)

        assert result_full.converged
        assert_allclose(result_full.x, result_restart.x, rtol=1e-4)

    def test_small_restart_still_converges(self, diagonal_system):
        matvec, b, x_true = diagonal_system

        result = gmres(matvec, b, tol=1e-10, restart=3, maxiter=100)

        assert result.converged
        assert_allclose(result.x, x_true, rtol=1e-6)


class TestGMRESPreconditioner:
    """Test GMRES with preconditioning."""

    def test_preconditioner_accelerates(self, ill_conditioned_system):
        matvec, b, x_true, precond = ill_conditioned_system

        result_no_precond = gmres(matvec, b, tol=1e-8, restart=20, maxiter=200)
        result_precond = gmres(matvec, b, tol=1e-8, restart=20, maxiter=200,
                               preconditioner=precond)

        assert result_precond.converged
        assert result_precond.iterations < result_no_precond.iterations
        assert_allclose(result_precond.x, x_true, rtol=1e-6)

    def test_identity_preconditioner(self, tridiagonal_system):
        matvec, b, x_true = tridiagonal_system

        result_no_precond = gmres(matvec, b, tol=1e-10, maxiter=50)
        result_precond = gmres(matvec, b, tol=1e-10, maxiter=50,
                               preconditioner=lambda v: v)

        assert_allclose(result_no_precond.x, result_precond.x, rtol=1e-10)
        assert result_no_precond.iterations == result_precond.iterations


class TestGMRESConvergence:
    """Test GMRES convergence properties."""

    def test_residual_decreases(self, tridiagonal_system):
        matvec, b, _ = tridiagonal_system

        result = gmres(matvec, b, tol=1e-10, restart=10, maxiter=100)

        # Allow up to 10% increase between cycles
        for i in range(1, len(result.residual_history)):
            assert result.residual_history[i] <= result.residual_history[i-1] * 1.1, \
                f"Residual increased at cycle {i}"

    def test_maxiter_reached(self, ill_conditioned_system):
        matvec, b, _, _ = ill_conditioned_system

        result = gmres(matvec, b, tol=1e-15, restart=5, maxiter=10)

        assert not result.converged
        assert result.iterations == 10


# =============================================================================
# Helper routines
# =============================================================================

class TestHelpers:

    def test_back_substitute(self):
        R = np.array([[2.0, 1.0, -1.0],
                      [0.0, 3.0, 2.0],
                      [0.0, 0.0, 4.0]])
        b = np.array([1.0, 2.0, 8.0])

        x = _back_substitute(R, b)

        assert_allclose(R @ x, b, atol=1e-14)

    def test_modified_gram_schmidt_orthogonalises(self):
        rng = np.random.default_rng(0)
        V = np.linalg.qr(rng.standard_normal((6, 3)))[0].T  # orthonormal rows
        H = np.zeros((4, 3))
        w = rng.standard_normal(6)

        H, w_orth = _modified_gram_schmidt(H, V, w, 2)

        assert_allclose(V @ w_orth, np.zeros(3), atol=1e-12)
        assert_allclose(H[:3, 2], V @ w, rtol=1e-12, atol=1e-12)
