"""
Configuration schema for the pseudo-time drivers.

Dataclass-based configuration that can be loaded from YAML or constructed programmatically.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional


class ConfigurationError(ValueError):
    """Raised when a configuration value cannot be honoured."""
    pass


@dataclass
class MeshConfig:
    """Reference rectangular mesh configuration."""

    nx: int = 32
    ny: int = 16
    lx: float = 2.0
    ly: float = 1.0
    periodic: bool = False


@dataclass
class ProblemConfig:
    """Conservation law and boundary configuration."""

    # "advection", "burgers" or "euler"
    flux: str = "advection"
    # Advection velocity, or the flux direction for Burgers
    velocity: List[float] = field(default_factory=lambda: [1.0, 0.5])
    gamma: float = 1.4

    # Farfield/initial state (one entry per conserved variable).
    # For Euler this is given as [rho, u, v, p] and converted to conserved form.
    freestream: List[float] = field(default_factory=lambda: [1.0])

    # "farfield" (ghost = freestream) or "extrapolate" (ghost = interior)
    boundary: str = "farfield"

    # Amplitude of the Gaussian bump added to the freestream initial state
    bump_amplitude: float = 0.5
    bump_width: float = 0.15


@dataclass
class SteadySolverConfig:
    """Pseudo-time (steady-state) solver settings."""

    tol: float = 1e-6
    maxiter: int = 1000

    # CFL ramp: cflinit before rampstart, cflfin from rampend on
    cflinit: float = 1.0
    cflfin: float = 10.0
    rampstart: int = 0
    rampend: int = 50

    # Linear solver settings (backward Euler only)
    lintol: float = 1e-2
    linmaxiterstart: int = 5
    linmaxiterend: int = 40
    restart_vecs: int = 30

    # Preconditioner: "J", "SGS", "ILU0" or "none"
    preconditioner: str = "ILU0"
    # Linear solver: "BCGSTB", "GMRES" or "RICHARDSON"
    linearsolver: str = "GMRES"
    # Raise instead of falling back when a selector is not recognised
    strict_selection: bool = False

    # Sweeps per nonlinear iteration for the matrix-free LU-SGS driver
    lusgs_sweeps: int = 1

    logfile: str = "output/steady.log"
    lognres: bool = False


@dataclass
class UnsteadySolverConfig:
    """Physical-time (TVD Runge-Kutta) settings."""

    order: int = 3
    cfl: float = 0.5
    final_time: float = 1.0
    logfile: str = "output/unsteady.log"


@dataclass
class OutputConfig:
    """Console output configuration."""

    log_level: str = "INFO"
    show_time: bool = True
    save_state: Optional[str] = None


@dataclass
class SimulationConfig:
    """Complete simulation configuration."""

    # "forward_euler", "backward_euler", "lusgs" or "tvdrk"
    scheme: str = "backward_euler"
    mesh: MeshConfig = field(default_factory=MeshConfig)
    problem: ProblemConfig = field(default_factory=ProblemConfig)
    steady: SteadySolverConfig = field(default_factory=SteadySolverConfig)
    unsteady: UnsteadySolverConfig = field(default_factory=UnsteadySolverConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def to_dict(self) -> dict:
        """Convert to nested dictionary."""
        return asdict(self)


SCHEMES = ("forward_euler", "backward_euler", "lusgs", "tvdrk")


def coarse_preset() -> MeshConfig:
    """Small mesh for quick runs and tests."""
    return MeshConfig(nx=8, ny=4, lx=2.0, ly=1.0)


def euler_preset() -> ProblemConfig:
    """Subsonic Euler farfield problem (Mach 0.5 at unit density, sound speed 1)."""
    return ProblemConfig(
        flux="euler",
        gamma=1.4,
        freestream=[1.0, 0.5, 0.0, 1.0 / 1.4],
        boundary="farfield",
        bump_amplitude=0.2,
    )
