"""
Mesh module.

This module provides:
- A face-based unstructured mesh for cell-centred finite volume schemes
- A uniform rectangular mesh builder (optionally periodic)
"""

from .mesh import (
    UnstructuredMesh,
    rectangular_mesh,
)

__all__ = [
    'UnstructuredMesh',
    'rectangular_mesh',
]
