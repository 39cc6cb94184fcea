"""
First-order cell-centred finite volume operator with a Rusanov flux.

Residual of cell i (outflow positive):

    R_i = Σ_f F̂(u_L, u_R; n_f) |S_f|
    F̂   = ½ (F(u_L)·n + F(u_R)·n) - ½ s (u_R - u_L),  s = max(ρ(u_L), ρ(u_R))

Local pseudo-time step: Δt_i = |Ω_i| / Σ_f s_f |S_f|.

Face fluxes and their Jacobians are computed for all faces at once with
jax.vmap; the Jacobian uses forward-mode AD (jax.jacfwd) with respect to
both face states.
"""

from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt

from ..config.schema import ConfigurationError
from ..constants import NO_NEIGHBOR
from ..physics.jax_config import jax, jnp

NDArrayFloat = npt.NDArray[np.floating]

BOUNDARY_TYPES = ("farfield", "extrapolate")


class FiniteVolumeSpatial:
    """Spatial operator ``u -> (R, Δt_local [, ∂R/∂U])`` on an unstructured mesh.

    Parameters
    ----------
    mesh : UnstructuredMesh
    flux : InviscidFlux
    boundary : str
        "farfield" sets the ghost state to ``freestream``; "extrapolate"
        copies the interior state.
    freestream : sequence of float, optional
        Conserved farfield state, required for "farfield" boundaries.
    """

    def __init__(self, mesh, flux, boundary: str = "farfield",
                 freestream: Optional[Sequence[float]] = None) -> None:
        if boundary not in BOUNDARY_TYPES:
            raise ConfigurationError(
                f"Unknown boundary type '{boundary}'. Expected one of {', '.join(BOUNDARY_TYPES)}"
            )
        self.mesh = mesh
        self.flux = flux
        self.nvars = flux.nvars
        self.boundary = boundary

        if freestream is None:
            if boundary == "farfield" and mesh.boundary_faces.size > 0:
                raise ValueError("Farfield boundaries need a freestream state")
            freestream = np.zeros(self.nvars)
        self.freestream = np.asarray(freestream, dtype=np.float64)
        if self.freestream.shape != (self.nvars,):
            raise ValueError(
                f"Freestream has {self.freestream.size} entries, flux has {self.nvars} variables"
            )

        self._interior = mesh.face_right != NO_NEIGHBOR
        self._boundary = ~self._interior
        # Ghost index for right-hand states of boundary faces (left cell when extrapolating)
        self._right = np.where(self._interior, mesh.face_right, mesh.face_left)

        self._face_flux = jax.jit(jax.vmap(self._rusanov))
        self._face_jacobian = jax.jit(jax.vmap(jax.jacfwd(self._rusanov, argnums=(0, 1))))
        self._face_speed = jax.jit(jax.vmap(self._max_speed))

    # -------------------------------------------------------------------------
    # Face functions (single face, vmapped above)
    # -------------------------------------------------------------------------

    def _max_speed(self, uL, uR, n):
        return jnp.maximum(self.flux.spectral_radius(uL, n), self.flux.spectral_radius(uR, n))

    def _rusanov(self, uL, uR, n):
        s = self._max_speed(uL, uR, n)
        fL = self.flux.normal_flux(uL, n)
        fR = self.flux.normal_flux(uR, n)
        return 0.5 * (fL + fR) - 0.5 * s * (uR - uL)

    def _face_states(self, u: NDArrayFloat):
        mesh = self.mesh
        uL = u[mesh.face_left]
        uR = u[self._right]
        if self.boundary == "farfield":
            uR[self._boundary] = self.freestream
        return uL, uR

    def _check_state(self, u: NDArrayFloat) -> None:
        if u.shape != (self.mesh.ncells, self.nvars):
            raise ValueError(f"State has shape {u.shape}, expected ({self.mesh.ncells}, {self.nvars})")

    # -------------------------------------------------------------------------
    # Operator interface
    # -------------------------------------------------------------------------

    def compute_residual(self, u: NDArrayFloat, residual: NDArrayFloat, get_dt: bool,
                         dt_local: NDArrayFloat) -> None:
        """Overwrite ``residual`` with R(u); refill ``dt_local`` when ``get_dt``."""
        self._check_state(u)
        mesh = self.mesh
        uL, uR = self._face_states(u)

        flux = np.asarray(self._face_flux(uL, uR, mesh.face_normal))
        flux *= mesh.face_length[:, None]

        residual[:] = 0.0
        np.add.at(residual, mesh.face_left, flux)
        np.subtract.at(residual, mesh.face_right[self._interior], flux[self._interior])

        if get_dt:
            speed = np.asarray(self._face_speed(uL, uR, mesh.face_normal)) * mesh.face_length
            total = np.zeros(mesh.ncells)
            np.add.at(total, mesh.face_left, speed)
            np.add.at(total, mesh.face_right[self._interior], speed[self._interior])
            dt_local[:] = mesh.area / np.maximum(total, 1e-300)

    def compute_jacobian(self, u: NDArrayFloat, matrix) -> None:
        """Add ∂R/∂U to ``matrix`` block by block."""
        self._check_state(u)
        mesh = self.mesh
        uL, uR = self._face_states(u)

        dFdL, dFdR = self._face_jacobian(uL, uR, mesh.face_normal)
        length = mesh.face_length[:, None, None]
        dFdL = np.asarray(dFdL) * length
        dFdR = np.asarray(dFdR) * length

        if self.boundary == "extrapolate":
            # Ghost state is the left cell itself
            dFdL[self._boundary] += dFdR[self._boundary]

        left = mesh.face_left
        inner = self._interior
        lf, rf = left[inner], mesh.face_right[inner]

        rows = np.concatenate([left, lf, rf, rf])
        cols = np.concatenate([left, rf, lf, rf])
        blocks = np.concatenate([dFdL, dFdR[inner], -dFdL[inner], -dFdR[inner]])
        matrix.add_blocks(rows, cols, blocks)
