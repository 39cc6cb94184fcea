"""
Solver Factory Module.

Builds the mesh, flux, spatial operator, initial state and driver described
by a SimulationConfig, so that the CLI and the tests set up runs the same way.
"""

from typing import Tuple, Union

import numpy as np
from loguru import logger

from .base import SolveReport
from .explicit import SteadyForwardEulerSolver
from .implicit import SteadyBackwardEulerSolver
from .lusgs_driver import SteadyLUSGSSolver
from .tvdrk import TVDRKSolver
from ..config.schema import (
    ConfigurationError, MeshConfig, ProblemConfig, SimulationConfig, SCHEMES,
)
from ..grid.mesh import UnstructuredMesh, rectangular_mesh
from ..numerics.spatial import FiniteVolumeSpatial
from ..physics.jax_config import get_device_info
from ..physics.flux import (
    BurgersFlux, EulerFlux, FLUXES, InviscidFlux, LinearAdvectionFlux,
)

Solver = Union[SteadyForwardEulerSolver, SteadyBackwardEulerSolver,
               SteadyLUSGSSolver, TVDRKSolver]


def build_mesh(config: MeshConfig) -> UnstructuredMesh:
    return rectangular_mesh(config.nx, config.ny, config.lx, config.ly,
                            periodic=config.periodic)


def build_flux(config: ProblemConfig) -> InviscidFlux:
    """Create the physical flux named by ``config.flux``."""
    name = config.flux.lower()
    if name not in FLUXES:
        raise ConfigurationError(
            f"Unknown flux '{config.flux}'. Expected one of {', '.join(FLUXES)}"
        )
    if name == 'advection':
        return LinearAdvectionFlux(config.velocity)
    if name == 'burgers':
        return BurgersFlux(config.velocity)
    return EulerFlux(config.gamma)


def freestream_state(flux: InviscidFlux, config: ProblemConfig) -> np.ndarray:
    """Conserved freestream state; Euler freestreams are given as (ρ, u, v, p)."""
    values = [float(v) for v in config.freestream]
    if isinstance(flux, EulerFlux):
        if len(values) != 4:
            raise ConfigurationError(
                f"Euler freestream needs [rho, u, v, p], got {len(values)} values"
            )
        return flux.primitive_to_conserved(*values)
    if len(values) != flux.nvars:
        raise ConfigurationError(
            f"Freestream has {len(values)} values, flux '{config.flux}' has {flux.nvars}"
        )
    return np.array(values)


def initial_state(mesh: UnstructuredMesh, flux: InviscidFlux,
                  config: ProblemConfig) -> np.ndarray:
    """Freestream plus a Gaussian bump centred in the domain.

    Scalar fluxes get the bump added to φ; Euler states get it on the
    density at constant velocity and pressure.
    """
    centre = 0.5 * (mesh.centroid.min(axis=0) + mesh.centroid.max(axis=0))
    r2 = np.sum((mesh.centroid - centre) ** 2, axis=1)
    bump = config.bump_amplitude * np.exp(-r2 / config.bump_width ** 2)

    if isinstance(flux, EulerFlux):
        rho, vx, vy, p = [float(v) for v in config.freestream]
        return np.stack([flux.primitive_to_conserved(rho * (1.0 + b), vx, vy, p)
                         for b in bump])

    u = np.tile(freestream_state(flux, config), (mesh.ncells, 1))
    u[:, 0] += bump
    return u


def create_solver(config: SimulationConfig, spatial: FiniteVolumeSpatial,
                  u: np.ndarray) -> Solver:
    """Instantiate the driver selected by ``config.scheme``."""
    scheme = config.scheme
    if scheme == "forward_euler":
        return SteadyForwardEulerSolver(spatial, config.steady)
    if scheme == "backward_euler":
        return SteadyBackwardEulerSolver(spatial, config.steady)
    if scheme == "lusgs":
        return SteadyLUSGSSolver(spatial, config.steady)
    if scheme == "tvdrk":
        uc = config.unsteady
        return TVDRKSolver(spatial, u, order=uc.order, cfl=uc.cfl, logfile=uc.logfile)
    raise ConfigurationError(
        f"Unknown time scheme '{scheme}'. Expected one of {', '.join(SCHEMES)}"
    )


def setup_simulation(config: SimulationConfig) -> Tuple[FiniteVolumeSpatial, np.ndarray, Solver]:
    """Build spatial operator, initial state and driver for a configuration."""
    mesh = build_mesh(config.mesh)
    flux = build_flux(config.problem)
    spatial = FiniteVolumeSpatial(mesh, flux, boundary=config.problem.boundary,
                                  freestream=freestream_state(flux, config.problem))
    u = initial_state(mesh, flux, config.problem)
    solver = create_solver(config, spatial, u)

    logger.info(f"Mesh: {mesh}")
    logger.info(f"Flux: {type(flux).__name__} ({flux.nvars} variables), "
                f"boundary: {config.problem.boundary}")
    logger.info(f"Scheme: {config.scheme}")
    logger.debug(get_device_info())
    return spatial, u, solver


def run_simulation(config: SimulationConfig) -> Tuple[np.ndarray, SolveReport]:
    """Set up and run a configuration; returns the final state and the report."""
    _, u, solver = setup_simulation(config)
    if isinstance(solver, TVDRKSolver):
        report = solver.solve(config.unsteady.final_time)
    else:
        report = solver.solve(u)
    return u, report
