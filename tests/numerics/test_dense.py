"""
Tests for the dense micro-solve used by LU-SGS and the block preconditioners.
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from pseudotime.numerics.dense import gausselim, invert_blocks, SingularBlockError


class TestGaussElim:

    @pytest.mark.parametrize("n", [1, 2, 4, 7])
    def test_matches_numpy(self, n):
        rng = np.random.default_rng(n)
        A = rng.standard_normal((n, n)) + n * np.eye(n)
        b = rng.standard_normal(n)

        x = gausselim(A, b)

        assert_allclose(x, np.linalg.solve(A, b), rtol=1e-12, atol=1e-12)

    def test_needs_pivoting(self):
        """Zero leading entry is handled by row exchange."""
        A = np.array([[0.0, 1.0],
                      [2.0, 3.0]])
        b = np.array([4.0, 5.0])

        x = gausselim(A, b)

        assert_allclose(A @ x, b, atol=1e-14)

    def test_inputs_untouched(self):
        A = np.array([[0.0, 1.0], [2.0, 3.0]])
        b = np.array([4.0, 5.0])
        A0, b0 = A.copy(), b.copy()

        gausselim(A, b)

        assert np.array_equal(A, A0)
        assert np.array_equal(b, b0)

    def test_singular_raises(self):
        A = np.array([[1.0, 2.0],
                      [2.0, 4.0]])
        with pytest.raises(SingularBlockError):
            gausselim(A, np.ones(2))

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            gausselim(np.eye(3), np.ones(2))


class TestInvertBlocks:

    def test_inverse_of_each_block(self):
        rng = np.random.default_rng(1)
        blocks = rng.standard_normal((5, 4, 4)) + 4.0 * np.eye(4)

        inv = invert_blocks(blocks)

        for k in range(5):
            assert_allclose(inv[k] @ blocks[k], np.eye(4), atol=1e-12)

    def test_singular_block_raises(self):
        blocks = np.stack([np.eye(2), np.zeros((2, 2))])
        with pytest.raises(SingularBlockError, match="1 singular"):
            invert_blocks(blocks)
