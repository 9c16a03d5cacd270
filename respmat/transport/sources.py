"""
Isotropic volumetric sources and the flux state they are built from.

All sources are per-cell emission densities (angle integrated).  The sweeper
turns them into angular sources using the unit-sum quadrature weights.
"""

from __future__ import annotations
from typing import Optional

import numpy as np

from ..errors import ConfigurationError


class State:
    """Multigroup scalar flux, shape [G, n] (group-major when flattened)."""

    def __init__(self, number_groups: int, number_cells: int):
        self.phi = np.zeros((number_groups, number_cells))
        self.keff = 1.0

    @property
    def number_groups(self) -> int:
        return self.phi.shape[0]

    def set_phi(self, g: int, values: np.ndarray):
        self.phi[g, :] = values

    def flux(self, g: int) -> np.ndarray:
        return self.phi[g]

    def flattened(self) -> np.ndarray:
        return self.phi.ravel()


class ScatterSource:
    """Group-to-group scatter source built from the cell materials."""

    def __init__(self, mesh, materials):
        # sigma_s per cell: [n, g, g'] scatter from g' into g
        self._sigma_s = materials.sigma_s[mesh.mat]

    def build_total_scatter_source(self, g: int, phi: np.ndarray) -> np.ndarray:
        """Scatter into group g from every group g' (within-group included)."""
        return np.einsum("nk,kn->n", self._sigma_s[:, g, :], phi)

    def build_within_group_source(self, g: int, phi_g: np.ndarray) -> np.ndarray:
        return self._sigma_s[:, g, g] * phi_g

    def build_in_scatter_source(self, g: int, phi: np.ndarray) -> np.ndarray:
        """Scatter into group g from all other groups."""
        return self.build_total_scatter_source(g, phi) - self.build_within_group_source(g, phi[g])


class FissionSource:
    """
    Fission source chi_g / k * sum_g' nu_sigma_f_g' phi_g'.

    The density is computed from the state on update(); setup_outer() sets the
    1/k scaling.  An uninitialized source contributes nothing.
    """

    def __init__(self, state: State, mesh, materials):
        self.state = state
        self._nu_sigma_f = materials.nu_sigma_f[mesh.mat]   # [n, G]
        self._chi = materials.chi[mesh.mat]                 # [n, G]
        self.density = np.zeros(mesh.number_cells)
        self.scale = 1.0
        self._initialized = False

    def initialize(self):
        """Activate the source (no-op for non-fissile problems)."""
        self._initialized = bool(np.any(self._nu_sigma_f > 0.0))
        self.density[:] = 0.0

    @property
    def initialized(self) -> bool:
        return self._initialized

    def update(self):
        self.density = np.einsum("ng,gn->n", self._nu_sigma_f, self.state.phi)

    def setup_outer(self, scale: float):
        self.scale = scale

    def source(self, g: int) -> np.ndarray:
        return self.scale * self._chi[:, g] * self.density

    def reset(self):
        self.density[:] = 0.0
        self.scale = 1.0


class ExternalSource:
    """Fixed isotropic source per group and cell."""

    def __init__(self, number_cells: int, number_groups: int):
        self.q = np.zeros((number_groups, number_cells))
        self._initialized = False

    @classmethod
    def uniform(cls, mesh, strengths, materials_mask: Optional[np.ndarray] = None) -> "ExternalSource":
        """Uniform source of the given per-group strengths, optionally only where mask is True."""
        strengths = np.atleast_1d(np.asarray(strengths, dtype=np.float64))
        src = cls(mesh.number_cells, len(strengths))
        mask = np.ones(mesh.number_cells, dtype=bool) if materials_mask is None else materials_mask
        for g, s in enumerate(strengths):
            src.set_source(g, np.where(mask, s, 0.0))
        return src

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def number_groups(self) -> int:
        return self.q.shape[0]

    def set_source(self, g: int, values):
        values = np.asarray(values, dtype=np.float64)
        if values.shape not in ((), self.q.shape[1:]):
            raise ConfigurationError(
                f"External source for group {g} has shape {values.shape}, expected {self.q.shape[1:]}"
            )
        self.q[g, :] = values
        self._initialized = True

    def source(self, g: int) -> np.ndarray:
        return self.q[g]
