"""
Product angular quadrature for 2-D discrete ordinates.

Octants are numbered by the signs of the direction cosines:
    0: (+mu, +eta)   1: (-mu, +eta)   2: (-mu, -eta)   3: (+mu, -eta)

Within an octant the angle index is a * number_polar + p: azimuth a
outermost, polar p innermost.  Azimuths are equally spaced in (0, pi/2)
measured from the x axis; polar cosines are half-range Gauss-Legendre nodes.
Weights sum to one over all four octants, so the scalar flux is
phi = sum_n w_n psi_n and an isotropic source q gives psi = q / sigma_t in an
infinite medium.
"""

from __future__ import annotations

import numpy as np

from ..errors import ConfigurationError

OCTANT_SIGNS = np.array([[1.0, 1.0], [-1.0, 1.0], [-1.0, -1.0], [1.0, -1.0]])


class ProductQuadrature:

    def __init__(self, number_azimuth: int, number_polar: int):
        if number_azimuth < 1 or number_polar < 1:
            raise ConfigurationError("Need at least one azimuth and one polar angle per octant")
        self.number_azimuth = number_azimuth
        self.number_polar = number_polar

        self.phi = (np.arange(number_azimuth) + 0.5) * np.pi / (2.0 * number_azimuth)
        nodes, weights = np.polynomial.legendre.leggauss(2 * number_polar)
        keep = nodes > 0.0
        # cos(theta) ascending; half-range weights sum to one
        self.xi = nodes[keep]
        self.polar_weight = weights[keep]

        sin_theta = np.sqrt(1.0 - self.xi ** 2)
        a, p = np.meshgrid(np.arange(number_azimuth), np.arange(number_polar), indexing="ij")
        a, p = a.ravel(), p.ravel()
        # Magnitudes of the in-plane cosines for one octant
        self._mu = sin_theta[p] * np.cos(self.phi[a])
        self._eta = sin_theta[p] * np.sin(self.phi[a])
        self._wt = self.polar_weight[p] / (4.0 * number_azimuth)

    @property
    def number_angles_octant(self) -> int:
        return self.number_azimuth * self.number_polar

    @property
    def number_angles(self) -> int:
        return 4 * self.number_angles_octant

    def mu(self, octant: int) -> np.ndarray:
        return OCTANT_SIGNS[octant, 0] * self._mu

    def eta(self, octant: int) -> np.ndarray:
        return OCTANT_SIGNS[octant, 1] * self._eta

    def weights(self) -> np.ndarray:
        """Per-angle weights of one octant (identical for every octant)."""
        return self._wt

    def angle(self, azimuth: int, polar: int) -> int:
        return azimuth * self.number_polar + polar
