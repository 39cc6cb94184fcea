"""
Global constants for the pseudo-time drivers.

These values are shared by the drivers and the reference spatial operator
so that tolerances and reporting cadences stay consistent.
"""

# Tolerance band used when comparing accumulated physical time to the final time
A_SMALL_NUMBER = 1e-12

# Number of spatial dimensions of the reference meshes
NDIM = 2

# Progress-line cadence (iterations) of each driver
EXPLICIT_PRINT_FREQ = 50
IMPLICIT_PRINT_FREQ = 10
UNSTEADY_PRINT_FREQ = 50

# Marker for the missing neighbour across a boundary face
NO_NEIGHBOR = -1
