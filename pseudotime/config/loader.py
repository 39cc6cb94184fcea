"""
YAML configuration loader with validation.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Union
from dataclasses import fields, is_dataclass

from .schema import (
    SimulationConfig, MeshConfig, ProblemConfig, SteadySolverConfig,
    UnsteadySolverConfig, OutputConfig, ConfigurationError, SCHEMES,
)


_SECTIONS = {
    'mesh': MeshConfig,
    'problem': ProblemConfig,
    'steady': SteadySolverConfig,
    'unsteady': UnsteadySolverConfig,
    'output': OutputConfig,
}


def _coerce_type(value, field_type):
    """Coerce value to the expected field type."""
    # Handle string representations of numbers (e.g., "1e-8")
    if field_type in (float, 'float') and isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    if field_type in (int, 'int') and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return value
    if field_type in (float, 'float') and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def _dict_to_dataclass(cls, data: dict):
    """Convert a flat dictionary to a dataclass instance, skipping unknown keys."""
    if not is_dataclass(cls):
        return data

    field_types = {f.name: f.type for f in fields(cls)}
    kwargs = {}

    for key, value in data.items():
        if key not in field_types:
            continue  # Skip unknown fields
        kwargs[key] = _coerce_type(value, field_types[key])

    return cls(**kwargs)


def load_yaml(path: Union[str, Path]) -> SimulationConfig:
    """
    Load simulation configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        SimulationConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}

    return from_dict(data)


def from_dict(data: Dict[str, Any]) -> SimulationConfig:
    """
    Create SimulationConfig from a dictionary.

    Handles nested sections and applies defaults for missing values.
    """
    config_dict = {}

    scheme = data.get('scheme', SimulationConfig.scheme)
    if scheme not in SCHEMES:
        raise ConfigurationError(
            f"Unknown time scheme '{scheme}'. Expected one of {', '.join(SCHEMES)}"
        )
    config_dict['scheme'] = scheme

    for name, cls in _SECTIONS.items():
        section = data.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ConfigurationError(f"Section '{name}' must be a mapping, got {type(section).__name__}")
        config_dict[name] = _dict_to_dataclass(cls, section)

    return SimulationConfig(**config_dict)


def apply_cli_overrides(config: SimulationConfig, args) -> SimulationConfig:
    """
    Apply command-line argument overrides to a configuration.

    Only overrides values that were explicitly set (not None).

    Args:
        config: Base configuration
        args: argparse.Namespace with CLI arguments

    Returns:
        Updated SimulationConfig
    """
    config_dict = config.to_dict()

    # Map CLI args to config paths
    cli_mapping = {
        'scheme': ('scheme',),

        # Mesh
        'nx': ('mesh', 'nx'),
        'ny': ('mesh', 'ny'),

        # Problem
        'flux': ('problem', 'flux'),

        # Steady solver
        'maxiter': ('steady', 'maxiter'),
        'tol': ('steady', 'tol'),
        'cfl': ('steady', 'cflfin'),
        'cfl_start': ('steady', 'cflinit'),
        'preconditioner': ('steady', 'preconditioner'),
        'linear_solver': ('steady', 'linearsolver'),
        'logfile': ('steady', 'logfile'),

        # Unsteady solver
        'order': ('unsteady', 'order'),
        'final_time': ('unsteady', 'final_time'),

        # Output
        'log_level': ('output', 'log_level'),
        'save': ('output', 'save_state'),
    }

    for cli_name, config_path in cli_mapping.items():
        if hasattr(args, cli_name):
            value = getattr(args, cli_name)
            if value is not None:
                target = config_dict
                for key in config_path[:-1]:
                    target = target[key]
                target[config_path[-1]] = value

    if getattr(args, 'lognres', False):
        config_dict['steady']['lognres'] = True

    return from_dict(config_dict)


def save_yaml(config: SimulationConfig, path: Union[str, Path]) -> None:
    """Save configuration to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
