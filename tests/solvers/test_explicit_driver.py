"""
Tests for the forward Euler pseudo-time driver.

Tests cover:
1. The update formula on a single cell
2. Convergence on a linear operator and on the finite volume operator
3. maxiter <= 0 and shape validation
4. Residual history file and run-summary line
5. Timers accumulating across solves
"""

import dataclasses

import pytest
import numpy as np
from numpy.testing import assert_allclose

from pseudotime.numerics.spatial import FiniteVolumeSpatial
from pseudotime.physics.flux import LinearAdvectionFlux
from pseudotime.solvers import SteadyForwardEulerSolver


class TestUpdate:

    def test_single_cell_constant_residual(self, single_cell_mesh, make_constant_spatial,
                                           steady_config):
        """R = r everywhere, Δt = 1, |Ω| = 1: u_k = u_0 - k cfl r."""
        r = [[0.2, -0.4]]
        spatial = make_constant_spatial(single_cell_mesh, r)
        config = dataclasses.replace(steady_config, cflinit=0.5, maxiter=7, tol=0.0)
        u = np.array([[1.0, 2.0]])

        report = SteadyForwardEulerSolver(spatial, config).solve(u)

        assert_allclose(u, [[1.0 - 0.5 * 7 * 0.2, 2.0 + 0.5 * 7 * 0.4]])
        assert report.steps == 7
        assert not report.converged
        assert report.history == [1.0] * 7

    def test_cfl_ramp_ignored(self, single_cell_mesh, make_constant_spatial, steady_config):
        spatial = make_constant_spatial(single_cell_mesh, [[1.0]])
        config = dataclasses.replace(steady_config, cflinit=0.25, cflfin=100.0,
                                     rampstart=0, rampend=1, maxiter=3, tol=0.0)
        u = np.zeros((1, 1))

        SteadyForwardEulerSolver(spatial, config).solve(u)

        assert_allclose(u, [[-0.75]])


class TestConvergence:

    def test_linear_operator(self, scalar_linear_spatial, steady_config):
        config = dataclasses.replace(steady_config, cflinit=0.5, maxiter=500, tol=1e-10)
        u = np.zeros((scalar_linear_spatial.mesh.ncells, 1))

        report = SteadyForwardEulerSolver(scalar_linear_spatial, config).solve(u)

        assert report.converged
        assert report.relres <= 1e-10
        assert np.all(np.diff(report.history) < 0.0)
        assert_allclose(u, scalar_linear_spatial.exact_solution(), rtol=1e-8)

    def test_finite_volume_advection(self, small_mesh, steady_config):
        spatial = FiniteVolumeSpatial(small_mesh, LinearAdvectionFlux((1.0, 0.5)),
                                      freestream=[1.0])
        config = dataclasses.replace(steady_config, cflinit=0.9, maxiter=2000, tol=1e-10)
        u = 1.0 + np.linspace(0.0, 0.5, small_mesh.ncells)[:, None]

        report = SteadyForwardEulerSolver(spatial, config).solve(u)

        assert report.converged
        assert_allclose(u, 1.0, atol=1e-8)

    def test_zero_initial_residual(self, scalar_linear_spatial, steady_config):
        u = scalar_linear_spatial.exact_solution()
        scalar_linear_spatial.b = (scalar_linear_spatial.K @ u.ravel()).reshape(u.shape)

        report = SteadyForwardEulerSolver(scalar_linear_spatial, steady_config).solve(u)

        assert report.converged
        assert report.steps == 1
        assert report.relres == 0.0


class TestEdgeCases:

    @pytest.mark.parametrize("maxiter", [0, -3])
    def test_no_iterations(self, scalar_linear_spatial, steady_config, maxiter, log_messages):
        config = dataclasses.replace(steady_config, maxiter=maxiter)
        u = np.linspace(0.0, 1.0, scalar_linear_spatial.mesh.ncells)[:, None]
        u0 = u.copy()

        report = SteadyForwardEulerSolver(scalar_linear_spatial, config).solve(u)

        assert np.array_equal(u, u0)
        assert scalar_linear_spatial.residual_calls == 0
        assert report.steps == 0
        assert not report.converged
        assert any("no iterations" in m for m in log_messages)

    def test_state_shape(self, scalar_linear_spatial, steady_config):
        solver = SteadyForwardEulerSolver(scalar_linear_spatial, steady_config)
        with pytest.raises(ValueError, match="shape"):
            solver.solve(np.zeros((3, 1)))

    def test_not_converged_warns(self, scalar_linear_spatial, steady_config, log_messages):
        config = dataclasses.replace(steady_config, cflinit=0.5, maxiter=3, tol=1e-12)
        u = np.zeros((scalar_linear_spatial.mesh.ncells, 1))

        report = SteadyForwardEulerSolver(scalar_linear_spatial, config).solve(u)

        assert not report.converged
        assert report.steps == 3
        assert any("exceeded max iterations" in m for m in log_messages)


class TestLogFiles:

    def test_residual_history_file(self, scalar_linear_spatial, steady_config):
        config = dataclasses.replace(steady_config, cflinit=0.5, maxiter=12, tol=1e-14,
                                     lognres=True)
        u = np.zeros((scalar_linear_spatial.mesh.ncells, 1))

        report = SteadyForwardEulerSolver(scalar_linear_spatial, config).solve(u)

        with open(config.logfile + ".conv") as f:
            lines = f.read().splitlines()
        assert len(lines) == report.steps == 12
        steps = [int(line.split()[0]) for line in lines]
        values = [float(line.split()[1]) for line in lines]
        assert steps == list(range(1, 13))
        assert values[0] == 1.0
        assert_allclose(values, report.history, rtol=1e-5)

    def test_no_history_file_by_default(self, scalar_linear_spatial, steady_config):
        config = dataclasses.replace(steady_config, maxiter=2)
        u = np.zeros((scalar_linear_spatial.mesh.ncells, 1))

        SteadyForwardEulerSolver(scalar_linear_spatial, config).solve(u)

        with open(config.logfile) as f:
            assert len(f.read().splitlines()) == 1
        with pytest.raises(FileNotFoundError):
            open(config.logfile + ".conv")

    def test_summary_line(self, scalar_linear_spatial, steady_config):
        config = dataclasses.replace(steady_config, maxiter=4)
        solver = SteadyForwardEulerSolver(scalar_linear_spatial, config)
        u = np.zeros((scalar_linear_spatial.mesh.ncells, 1))

        report = solver.solve(u)
        solver.solve(u)

        with open(config.logfile) as f:
            lines = f.read().splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("\t")
        threads, wall, cpu = lines[0].split("\t")[1:]
        assert int(threads) == report.threads >= 1
        assert float(wall) == pytest.approx(report.walltime)
        assert float(cpu) >= 0.0


class TestTimers:

    def test_accumulate_across_solves(self, scalar_linear_spatial, steady_config):
        config = dataclasses.replace(steady_config, maxiter=3)
        solver = SteadyForwardEulerSolver(scalar_linear_spatial, config)
        u = np.zeros((scalar_linear_spatial.mesh.ncells, 1))

        solver.solve(u)
        solver.timer.walltime = 1.0e6
        report = solver.solve(u)

        assert report.walltime >= 1.0e6
        assert solver.get_run_times()[0] == report.walltime
