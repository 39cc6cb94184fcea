"""
Matrix-free LU-SGS sweep for the implicit pseudo-time system.

Approximately solves

    (|Ω|/(CFL·Δt) I + ∂R/∂U) du = -R

with one forward and one backward Gauss-Seidel pass over the cells. The
off-diagonal blocks are never formed: the neighbour coupling is evaluated
through the physical flux,

    ΔF_j = F(u_j + du_j)·n_ij - F(u_j)·n_ij
    rhs_i -= ½ |S_ij| (ΔF_j - s_ij du_j)

where s_ij is the spectral radius at the face-average state. Each cell then
solves its small dense system D_i du_i = -R_i + rhs_i.

Reference: Luo, Baum & Löhner (1998), "A fast, matrix-free implicit method
for compressible flows on unstructured grids", J. Comput. Phys. 146.
"""

import numpy as np
import numpy.typing as npt

from .dense import gausselim
from ..constants import NO_NEIGHBOR

NDArrayFloat = npt.NDArray[np.floating]


class LUSGSSolver:
    """One LU-SGS sweep per call to :meth:`update`.

    Parameters
    ----------
    mesh : UnstructuredMesh
        Provides per-cell faces, neighbours, normals and face lengths.
    flux : InviscidFlux
        Physical flux with ``evaluate(u, n)`` and ``wave_speed(u, n)``.
    diag : ndarray (ncells, nvars, nvars)
        Diagonal blocks D_i.
    residual : ndarray (ncells, nvars)
        Current residual R.
    state : ndarray (ncells, nvars)
        Current state U (read only). The neighbour fluxes and wave speeds are
        sampled from it once, at construction.
    du : ndarray (ncells, nvars)
        Update vector, refined in place. Its content on entry is the
        initial guess seen by not-yet-visited neighbours.
    """

    def __init__(self, mesh, flux, diag: NDArrayFloat, residual: NDArrayFloat,
                 state: NDArrayFloat, du: NDArrayFloat) -> None:
        nvars = state.shape[1]
        for name, arr, shape in (("diag", diag, (mesh.ncells, nvars, nvars)),
                                 ("residual", residual, (mesh.ncells, nvars)),
                                 ("du", du, (mesh.ncells, nvars))):
            if arr.shape != shape:
                raise ValueError(f"LU-SGS {name} has shape {arr.shape}, expected {shape}")
        self.mesh = mesh
        self.flux = flux
        self.diag = diag
        self.residual = residual
        self.state = state
        self.du = du
        self.nvars = nvars

        self._rhs = np.zeros(nvars)
        self._precompute_faces()

    def _precompute_faces(self) -> None:
        """Per (cell, local face) terms that do not depend on du, in batched calls."""
        mesh = self.mesh
        u = self.state
        shape = mesh.elem_nbr.shape
        self._normal = np.zeros(shape + (2,))
        self._flux_nbr = np.zeros(shape + (self.nvars,))
        self._speed = np.zeros(shape)

        cells, ks = np.nonzero(mesh.elem_nbr != NO_NEIGHBOR)
        if cells.size == 0:
            return
        nbrs = mesh.elem_nbr[cells, ks]
        faces = mesh.elem_face[cells, ks]
        normals = mesh.elem_sign[cells, ks][:, None] * mesh.face_normal[faces]

        self._normal[cells, ks] = normals
        self._flux_nbr[cells, ks] = self.flux.evaluate_batch(u[nbrs], normals)
        self._speed[cells, ks] = self.flux.wave_speed_batch(0.5 * (u[cells] + u[nbrs]), normals)

    def update(self) -> None:
        """Forward pass in ascending cell order, then backward pass in descending order."""
        ncells = self.mesh.ncells
        for i in range(ncells):
            self._relax_cell(i)
        for i in range(ncells - 1, -1, -1):
            self._relax_cell(i)

    def _relax_cell(self, i: int) -> None:
        mesh = self.mesh
        u = self.state
        du = self.du
        rhs = self._rhs
        rhs[:] = 0.0

        for k in range(mesh.nfael[i]):
            j = mesh.elem_nbr[i, k]
            if j == NO_NEIGHBOR:
                continue
            length = mesh.face_length[mesh.elem_face[i, k]]
            dflux = self.flux.evaluate(u[j] + du[j], self._normal[i, k]) - self._flux_nbr[i, k]
            rhs -= 0.5 * length * (dflux - self._speed[i, k] * du[j])

        du[i] = gausselim(self.diag[i], -self.residual[i] + rhs)


def lusgs_diagonal_blocks(mesh, flux, state: NDArrayFloat, dt_local: NDArrayFloat,
                          cfl: float) -> NDArrayFloat:
    """D_i = (|Ω_i|/(CFL Δt_i) + ½ Σ_f s_f |S_f|) I.

    The spectral radius is taken at the face-average state on interior
    faces and at the cell state on boundary faces.
    """
    nvars = state.shape[1]
    left = mesh.face_left
    right = mesh.face_right
    interior = right != NO_NEIGHBOR

    u_face = state[left].copy()
    u_face[interior] = 0.5 * (state[left[interior]] + state[right[interior]])
    s_len = 0.5 * flux.wave_speed_batch(u_face, mesh.face_normal) * mesh.face_length

    diag = mesh.area / (cfl * dt_local)
    np.add.at(diag, left, s_len)
    np.add.at(diag, right[interior], s_len[interior])

    return diag[:, None, None] * np.eye(nvars)[None, :, :]
