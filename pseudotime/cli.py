"""
Command-line entry point.

Usage:
    pseudotime                                  # defaults (backward Euler, advection)
    pseudotime case.yaml
    pseudotime case.yaml --scheme lusgs --maxiter 200 --cfl 20
    pseudotime case.yaml --scheme tvdrk --order 2 --final-time 0.5 --save u.npy
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
from loguru import logger

from .config import (
    ConfigurationError, SimulationConfig, SCHEMES, apply_cli_overrides, load_yaml,
)
from .physics.jax_config import select_device
from .solvers.factory import run_simulation
from .utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pseudotime",
        description="Run a pseudo-time or TVD Runge-Kutta solve on a reference finite volume problem"
    )
    parser.add_argument("config", nargs="?", default=None,
                        help="YAML configuration file (default: built-in defaults)")

    parser.add_argument("--scheme", choices=SCHEMES, default=None,
                        help="Time integration scheme")

    # Problem
    parser.add_argument("--nx", type=int, default=None, help="Cells in x")
    parser.add_argument("--ny", type=int, default=None, help="Cells in y")
    parser.add_argument("--flux", type=str, default=None,
                        help="Physical flux: advection, burgers or euler")

    # Steady solver
    parser.add_argument("--maxiter", "-n", type=int, default=None,
                        help="Maximum pseudo-time iterations")
    parser.add_argument("--tol", type=float, default=None,
                        help="Relative residual tolerance")
    parser.add_argument("--cfl", type=float, default=None,
                        help="Final CFL number of the ramp")
    parser.add_argument("--cfl-start", type=float, default=None,
                        help="Initial CFL number (also the forward Euler CFL)")
    parser.add_argument("--preconditioner", type=str, default=None,
                        help="J, SGS, ILU0 or none")
    parser.add_argument("--linear-solver", type=str, default=None,
                        help="BCGSTB, GMRES or richardson")
    parser.add_argument("--logfile", type=str, default=None,
                        help="Run-summary log file")
    parser.add_argument("--lognres", action="store_true",
                        help="Write the relative residual history to <logfile>.conv")

    # Unsteady solver
    parser.add_argument("--order", type=int, default=None, help="TVD-RK order (1-3)")
    parser.add_argument("--final-time", type=float, default=None,
                        help="Final physical time for TVD-RK")

    # Output
    parser.add_argument("--log-level", type=str, default=None,
                        help="Console log level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--save", type=str, default=None,
                        help="Save the final state to this .npy file")
    parser.add_argument("--device", type=str, default=None,
                        help="JAX device: 'auto', 'cpu', or GPU index ('0', 'cuda:1')")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    select_device(args.device)

    try:
        config = load_yaml(args.config) if args.config else SimulationConfig()
        config = apply_cli_overrides(config, args)
    except (FileNotFoundError, ConfigurationError) as e:
        setup_logging()
        logger.error(str(e))
        return 2

    setup_logging(config.output.log_level, config.output.show_time)

    try:
        u, report = run_simulation(config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    if config.output.save_state:
        path = Path(config.output.save_state)
        path.parent.mkdir(parents=True, exist_ok=True)
        np.save(path, u)
        logger.info(f"Final state saved to {path}")

    if report.converged:
        logger.success(f"Finished: {report.steps} steps, rel residual {report.relres:.3e}")
        return 0
    logger.warning(f"Not converged after {report.steps} steps (rel residual {report.relres:.3e})")
    return 1


if __name__ == "__main__":
    sys.exit(main())
