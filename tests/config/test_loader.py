"""
Tests for the YAML configuration loader.
"""

import argparse

import pytest
import yaml

from pseudotime.config import (
    ConfigurationError,
    SimulationConfig,
    SteadySolverConfig,
    apply_cli_overrides,
    coarse_preset,
    euler_preset,
    from_dict,
    load_yaml,
    save_yaml,
)


class TestFromDict:

    def test_defaults(self):
        config = from_dict({})

        assert config == SimulationConfig()
        assert config.scheme == "backward_euler"
        assert config.steady.preconditioner == "ILU0"

    def test_nested_sections(self):
        config = from_dict({
            'scheme': 'lusgs',
            'mesh': {'nx': 10, 'ny': 5},
            'steady': {'tol': '1e-8', 'maxiter': '25', 'cflinit': 2, 'lognres': True},
            'unsteady': {'order': 2},
        })

        assert config.scheme == 'lusgs'
        assert config.mesh.nx == 10
        assert config.mesh.lx == 2.0
        assert config.steady.tol == 1e-8
        assert config.steady.maxiter == 25
        assert config.steady.cflinit == 2.0
        assert isinstance(config.steady.cflinit, float)
        assert config.steady.lognres is True
        assert config.unsteady.order == 2

    def test_unknown_keys_ignored(self):
        config = from_dict({'steady': {'tol': 1e-3, 'multigrid': True}, 'extra': 1})
        assert config.steady.tol == 1e-3

    def test_unknown_scheme(self):
        with pytest.raises(ConfigurationError, match="crank_nicolson"):
            from_dict({'scheme': 'crank_nicolson'})

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="steady"):
            from_dict({'steady': [1, 2, 3]})


class TestYaml:

    def test_load(self, tmp_path):
        path = tmp_path / "case.yaml"
        path.write_text(
            "scheme: tvdrk\n"
            "problem:\n"
            "  flux: burgers\n"
            "  velocity: [1.0, 0.0]\n"
            "unsteady:\n"
            "  final_time: 0.25\n"
        )

        config = load_yaml(path)

        assert config.scheme == "tvdrk"
        assert config.problem.flux == "burgers"
        assert config.problem.velocity == [1.0, 0.0]
        assert config.unsteady.final_time == 0.25

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml(path) == SimulationConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_save_and_load(self, tmp_path):
        config = SimulationConfig(scheme="forward_euler", mesh=coarse_preset(),
                                  problem=euler_preset())
        path = tmp_path / "out" / "saved.yaml"

        save_yaml(config, path)

        with open(path) as f:
            raw = yaml.safe_load(f)
        assert raw['problem']['flux'] == 'euler'
        assert load_yaml(path) == config


class TestCliOverrides:

    def _args(self, **kwargs):
        defaults = dict(scheme=None, nx=None, ny=None, flux=None, maxiter=None, tol=None,
                        cfl=None, cfl_start=None, preconditioner=None, linear_solver=None,
                        logfile=None, lognres=False, order=None, final_time=None,
                        log_level=None, save=None)
        defaults.update(kwargs)
        return argparse.Namespace(**defaults)

    def test_only_set_values_override(self):
        base = from_dict({'steady': {'tol': 1e-4, 'maxiter': 10}})

        config = apply_cli_overrides(base, self._args(maxiter=99, cfl=25.0,
                                                      linear_solver="BCGSTB"))

        assert config.steady.maxiter == 99
        assert config.steady.tol == 1e-4
        assert config.steady.cflfin == 25.0
        assert config.steady.linearsolver == "BCGSTB"

    def test_lognres_flag(self):
        config = apply_cli_overrides(SimulationConfig(), self._args(lognres=True))
        assert config.steady.lognres

    def test_override_validated(self):
        with pytest.raises(ConfigurationError):
            apply_cli_overrides(SimulationConfig(), self._args(scheme="leapfrog"))


class TestPresets:

    def test_coarse_preset(self):
        mesh = coarse_preset()
        assert (mesh.nx, mesh.ny) == (8, 4)

    def test_euler_preset(self):
        problem = euler_preset()
        assert problem.flux == "euler"
        assert len(problem.freestream) == 4

    def test_steady_defaults(self):
        steady = SteadySolverConfig()
        assert steady.cflinit <= steady.cflfin
        assert steady.rampstart <= steady.rampend
        assert steady.linearsolver == "GMRES"
