"""
Face-based unstructured mesh for cell-centred finite volume schemes.

The drivers only need cell areas and the cell count; the spatial operator,
the block matrix pattern and the LU-SGS sweep also walk the face lists.

Face convention: each face has a left cell and a right cell. The unit normal
points from left to right. Boundary faces have the interior cell on the left
and ``NO_NEIGHBOR`` on the right, so their normal points out of the domain.
"""

from typing import List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..constants import NO_NEIGHBOR

NDArrayFloat = npt.NDArray[np.floating]
NDArrayInt = npt.NDArray[np.integer]


class UnstructuredMesh:
    """Cell-centred 2D mesh described by its faces.

    Parameters
    ----------
    area : array (ncells,)
        Cell areas |Ω_i|.
    face_left, face_right : int arrays (nfaces,)
        Cells on either side of each face; ``face_right == NO_NEIGHBOR``
        marks a boundary face.
    face_normal : array (nfaces, 2)
        Unit normals pointing from the left cell to the right cell.
    face_length : array (nfaces,)
        Face lengths |S_f|.
    centroid : array (ncells, 2), optional
        Cell centroids, used to build initial conditions.
    """

    def __init__(self, area, face_left, face_right, face_normal, face_length,
                 centroid: Optional[NDArrayFloat] = None) -> None:
        self.area: NDArrayFloat = np.ascontiguousarray(area, dtype=np.float64)
        self.face_left: NDArrayInt = np.ascontiguousarray(face_left, dtype=np.int64)
        self.face_right: NDArrayInt = np.ascontiguousarray(face_right, dtype=np.int64)
        self.face_normal: NDArrayFloat = np.ascontiguousarray(face_normal, dtype=np.float64)
        self.face_length: NDArrayFloat = np.ascontiguousarray(face_length, dtype=np.float64)

        ncells = self.area.shape[0]
        if centroid is None:
            centroid = np.zeros((ncells, 2))
        self.centroid: NDArrayFloat = np.ascontiguousarray(centroid, dtype=np.float64)

        nfaces = self.face_left.shape[0]
        if not (self.face_right.shape[0] == nfaces and self.face_normal.shape == (nfaces, 2)
                and self.face_length.shape[0] == nfaces):
            raise ValueError("Face arrays must all have one entry per face")
        if np.any(self.area <= 0.0):
            raise ValueError("Cell areas must be positive")
        if np.any(self.face_left == self.face_right):
            raise ValueError("A face cannot connect a cell to itself")

        self._build_cell_faces()

    def _build_cell_faces(self) -> None:
        """Build padded per-cell face tables (face index, neighbour, normal sign)."""
        ncells = self.ncells
        counts = np.zeros(ncells, dtype=np.int64)
        np.add.at(counts, self.face_left, 1)
        interior = self.face_right != NO_NEIGHBOR
        np.add.at(counts, self.face_right[interior], 1)

        max_faces = int(counts.max()) if ncells > 0 else 0
        self.elem_face = np.full((ncells, max_faces), -1, dtype=np.int64)
        self.elem_nbr = np.full((ncells, max_faces), NO_NEIGHBOR, dtype=np.int64)
        self.elem_sign = np.zeros((ncells, max_faces), dtype=np.float64)
        self.nfael = np.zeros(ncells, dtype=np.int64)

        for iface in range(self.nfaces):
            for cell, nbr, sign in ((self.face_left[iface], self.face_right[iface], 1.0),
                                    (self.face_right[iface], self.face_left[iface], -1.0)):
                if cell == NO_NEIGHBOR:
                    continue
                k = self.nfael[cell]
                self.elem_face[cell, k] = iface
                self.elem_nbr[cell, k] = nbr
                self.elem_sign[cell, k] = sign
                self.nfael[cell] += 1

    @property
    def ncells(self) -> int:
        return self.area.shape[0]

    @property
    def nfaces(self) -> int:
        return self.face_left.shape[0]

    @property
    def interior_faces(self) -> NDArrayInt:
        """Indices of faces shared by two cells."""
        return np.nonzero(self.face_right != NO_NEIGHBOR)[0]

    @property
    def boundary_faces(self) -> NDArrayInt:
        return np.nonzero(self.face_right == NO_NEIGHBOR)[0]

    def neighbors(self, ielem: int) -> List[int]:
        """Face neighbours of a cell (boundary faces excluded)."""
        nbrs = self.elem_nbr[ielem, :self.nfael[ielem]]
        return [int(j) for j in nbrs if j != NO_NEIGHBOR]

    def adjacency(self) -> List[Tuple[int, int]]:
        """Sorted (row, col) block positions: every cell and its face neighbours."""
        pairs = set()
        for i in range(self.ncells):
            pairs.add((i, i))
            for j in self.neighbors(i):
                pairs.add((i, j))
        return sorted(pairs)

    def __repr__(self) -> str:
        return (f"UnstructuredMesh(ncells={self.ncells}, nfaces={self.nfaces}, "
                f"boundary_faces={self.boundary_faces.size})")


def rectangular_mesh(nx: int, ny: int, lx: float = 1.0, ly: float = 1.0,
                     periodic: bool = False) -> UnstructuredMesh:
    """Build a uniform Cartesian mesh of ``nx × ny`` quadrilaterals.

    Cell (i, j) has index ``i + nx*j``. With ``periodic=True`` the east/west
    and north/south edges are joined, so the mesh has no boundary faces.
    """
    if nx < 1 or ny < 1:
        raise ValueError(f"Mesh needs at least one cell per direction, got {nx} x {ny}")
    if periodic and (nx < 2 or ny < 2):
        raise ValueError("Periodic meshes need at least two cells per direction")

    dx = lx / nx
    dy = ly / ny

    def cell(i, j):
        return i + nx * j

    left, right, normal, length = [], [], [], []

    # Faces normal to x
    for j in range(ny):
        for i in range(nx - 1):
            left.append(cell(i, j)); right.append(cell(i + 1, j))
            normal.append((1.0, 0.0)); length.append(dy)
        if periodic:
            left.append(cell(nx - 1, j)); right.append(cell(0, j))
            normal.append((1.0, 0.0)); length.append(dy)
        else:
            left.append(cell(0, j)); right.append(NO_NEIGHBOR)
            normal.append((-1.0, 0.0)); length.append(dy)
            left.append(cell(nx - 1, j)); right.append(NO_NEIGHBOR)
            normal.append((1.0, 0.0)); length.append(dy)

    # Faces normal to y
    for i in range(nx):
        for j in range(ny - 1):
            left.append(cell(i, j)); right.append(cell(i, j + 1))
            normal.append((0.0, 1.0)); length.append(dx)
        if periodic:
            left.append(cell(i, ny - 1)); right.append(cell(i, 0))
            normal.append((0.0, 1.0)); length.append(dx)
        else:
            left.append(cell(i, 0)); right.append(NO_NEIGHBOR)
            normal.append((0.0, -1.0)); length.append(dx)
            left.append(cell(i, ny - 1)); right.append(NO_NEIGHBOR)
            normal.append((0.0, 1.0)); length.append(dx)

    xc = (np.arange(nx) + 0.5) * dx
    yc = (np.arange(ny) + 0.5) * dy
    XC, YC = np.meshgrid(xc, yc, indexing='xy')  # row j, column i -> flat index i + nx*j
    centroid = np.column_stack([XC.ravel(), YC.ravel()])

    area = np.full(nx * ny, dx * dy)

    return UnstructuredMesh(area, left, right, normal, length, centroid=centroid)
