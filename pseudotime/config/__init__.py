"""
Configuration module for the pseudo-time drivers.

Provides YAML-based configuration with dataclass schema.
"""

from .schema import (
    SimulationConfig,
    MeshConfig,
    ProblemConfig,
    SteadySolverConfig,
    UnsteadySolverConfig,
    OutputConfig,
    ConfigurationError,
    SCHEMES,
    coarse_preset,
    euler_preset,
)

from .loader import (
    load_yaml,
    from_dict,
    apply_cli_overrides,
    save_yaml,
)

__all__ = [
    # Schema classes
    'SimulationConfig',
    'MeshConfig',
    'ProblemConfig',
    'SteadySolverConfig',
    'UnsteadySolverConfig',
    'OutputConfig',
    'ConfigurationError',
    'SCHEMES',
    'coarse_preset',
    'euler_preset',
    # Loader functions
    'load_yaml',
    'from_dict',
    'apply_cli_overrides',
    'save_yaml',
]
