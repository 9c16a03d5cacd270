"""
Diamond-difference transport sweep on a 2-D Cartesian mesh.

For direction (mu, eta) and cell (i, j) with incoming face fluxes psi_x, psi_y:

    psi_c = (q + 2|mu|/dx psi_x + 2|eta|/dy psi_y) / (sigma_t + 2|mu|/dx + 2|eta|/dy)
    psi_x <- 2 psi_c - psi_x,   psi_y <- 2 psi_c - psi_y

Each octant is swept in the direction of propagation with all of its angles
processed together.  Incident face fluxes come from the boundary container,
and exiting face fluxes are written back to it.
"""

from __future__ import annotations

import numpy as np

from .mesh import LEFT, RIGHT, BOTTOM, TOP
from .quadrature import OCTANT_SIGNS


class Sweeper2D:

    def __init__(self, mesh, materials, quadrature, boundary):
        self.mesh = mesh
        self.quadrature = quadrature
        self.boundary = boundary
        nx, ny = mesh.number_cells_x, mesh.number_cells_y
        # sigma_t laid out [G, i, j]
        self._sigma_t = materials.sigma_t[mesh.mat_map].transpose(2, 0, 1).copy()
        self._nx, self._ny = nx, ny
        self.g = 0

    def setup_group(self, g: int):
        self.g = g

    def sweep(self, source: np.ndarray, g: int) -> np.ndarray:
        """
        Sweep all angles for group g with the isotropic source (per cell,
        flattened x-fastest) and return the scalar flux.
        """
        nx, ny = self._nx, self._ny
        dx, dy = self.mesh.dx, self.mesh.dy
        quad = self.quadrature
        wt = quad.weights()
        sig = self._sigma_t[g]
        q = np.asarray(source, dtype=np.float64).reshape(ny, nx).T
        phi = np.zeros((nx, ny))

        self.boundary.set_group(g)
        for octant in range(4):
            sx, sy = OCTANT_SIGNS[octant]
            mu = np.abs(quad.mu(octant))
            eta = np.abs(quad.eta(octant))
            x_in, x_out = (LEFT, RIGHT) if sx > 0 else (RIGHT, LEFT)
            y_in, y_out = (BOTTOM, TOP) if sy > 0 else (TOP, BOTTOM)
            # psi_x[j, angle] crosses x faces, psi_y[i, angle] crosses y faces
            psi_x = self.boundary.incident(x_in, octant).copy()
            psi_y = self.boundary.incident(y_in, octant).copy()
            i_range = range(nx) if sx > 0 else range(nx - 1, -1, -1)
            j_range = range(ny) if sy > 0 else range(ny - 1, -1, -1)
            for j in j_range:
                cy = 2.0 * eta / dy[j]
                for i in i_range:
                    cx = 2.0 * mu / dx[i]
                    psi_c = (q[i, j] + cx * psi_x[j] + cy * psi_y[i]) / (sig[i, j] + cx + cy)
                    psi_x[j] = 2.0 * psi_c - psi_x[j]
                    psi_y[i] = 2.0 * psi_c - psi_y[i]
                    phi[i, j] += wt @ psi_c
            self.boundary.set_outgoing(x_out, octant, psi_x)
            self.boundary.set_outgoing(y_out, octant, psi_y)

        return phi.T.ravel()
