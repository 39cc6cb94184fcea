"""
Inviscid physical fluxes for the reference finite volume operator.

Each flux maps one cell state u (nvars,) and a unit normal n (2,) to the
normal flux F(u)·n, and provides the spectral radius |λ|max of ∂(F·n)/∂u.
Implementations use jax.numpy so the face Jacobians can be obtained by
automatic differentiation.

State vectors:
    LinearAdvectionFlux, BurgersFlux: u = [φ]
    EulerFlux: u = [ρ, ρu, ρv, ρE]
"""

from typing import Sequence

import numpy as np

from .jax_config import jax, jnp


class InviscidFlux:
    """Base class for a physical flux F(u)·n.

    Subclasses implement :meth:`normal_flux` and :meth:`spectral_radius`
    for a single state. NumPy callers (the LU-SGS sweep) use
    :meth:`evaluate` and :meth:`wave_speed`, which go through JIT-compiled
    versions.
    """

    nvars: int = 1

    def __init__(self) -> None:
        self._normal_flux_jit = jax.jit(self.normal_flux)
        self._spectral_radius_jit = jax.jit(self.spectral_radius)
        self._normal_flux_batch = jax.jit(jax.vmap(self.normal_flux))
        self._spectral_radius_batch = jax.jit(jax.vmap(self.spectral_radius))

    def normal_flux(self, u, n):
        raise NotImplementedError

    def spectral_radius(self, u, n):
        raise NotImplementedError

    def evaluate(self, u: np.ndarray, n: np.ndarray) -> np.ndarray:
        """F(u)·n as a NumPy array."""
        return np.asarray(self._normal_flux_jit(u, n))

    def wave_speed(self, u: np.ndarray, n: np.ndarray) -> float:
        return float(self._spectral_radius_jit(u, n))

    def evaluate_batch(self, u: np.ndarray, n: np.ndarray) -> np.ndarray:
        """F(u_f)·n_f for stacked states (nf, nvars) and normals (nf, 2)."""
        return np.asarray(self._normal_flux_batch(u, n))

    def wave_speed_batch(self, u: np.ndarray, n: np.ndarray) -> np.ndarray:
        return np.asarray(self._spectral_radius_batch(u, n))


class LinearAdvectionFlux(InviscidFlux):
    """Scalar linear advection F(φ) = a φ."""

    nvars = 1

    def __init__(self, velocity: Sequence[float] = (1.0, 0.0)) -> None:
        if len(velocity) != 2:
            raise ValueError(f"Advection velocity needs two components, got {len(velocity)}")
        self.velocity = (float(velocity[0]), float(velocity[1]))
        super().__init__()

    def normal_flux(self, u, n):
        an = self.velocity[0] * n[0] + self.velocity[1] * n[1]
        return an * u

    def spectral_radius(self, u, n):
        return jnp.abs(self.velocity[0] * n[0] + self.velocity[1] * n[1])


class BurgersFlux(InviscidFlux):
    """Scalar inviscid Burgers flux F(φ) = ½ φ² d along a fixed direction d."""

    nvars = 1

    def __init__(self, direction: Sequence[float] = (1.0, 1.0)) -> None:
        self.direction = (float(direction[0]), float(direction[1]))
        super().__init__()

    def normal_flux(self, u, n):
        dn = self.direction[0] * n[0] + self.direction[1] * n[1]
        return 0.5 * u * u * dn

    def spectral_radius(self, u, n):
        dn = self.direction[0] * n[0] + self.direction[1] * n[1]
        return jnp.abs(u[0] * dn)


class EulerFlux(InviscidFlux):
    """Compressible Euler flux for a calorically perfect gas."""

    nvars = 4

    def __init__(self, gamma: float = 1.4) -> None:
        self.gamma = float(gamma)
        super().__init__()

    def pressure(self, u):
        rho = u[0]
        kinetic = 0.5 * (u[1] * u[1] + u[2] * u[2]) / rho
        return (self.gamma - 1.0) * (u[3] - kinetic)

    def normal_flux(self, u, n):
        rho = u[0]
        vx = u[1] / rho
        vy = u[2] / rho
        p = self.pressure(u)
        vn = vx * n[0] + vy * n[1]
        return jnp.stack([
            rho * vn,
            u[1] * vn + p * n[0],
            u[2] * vn + p * n[1],
            (u[3] + p) * vn,
        ])

    def spectral_radius(self, u, n):
        rho = u[0]
        vn = (u[1] * n[0] + u[2] * n[1]) / rho
        c = jnp.sqrt(self.gamma * self.pressure(u) / rho)
        return jnp.abs(vn) + c

    def primitive_to_conserved(self, rho: float, vx: float, vy: float, p: float) -> np.ndarray:
        """Convert (ρ, u, v, p) to [ρ, ρu, ρv, ρE]."""
        energy = p / (self.gamma - 1.0) + 0.5 * rho * (vx * vx + vy * vy)
        return np.array([rho, rho * vx, rho * vy, energy])


FLUXES = {
    'advection': LinearAdvectionFlux,
    'burgers': BurgersFlux,
    'euler': EulerFlux,
}
