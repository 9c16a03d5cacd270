"""
One-group diffusion loss operators for preconditioning.

Cell-centred finite volumes on the 2-D mesh:

    -div D grad phi + (sigma_t - sigma_s,gg) phi

with harmonic-mean face couplings, Marshak vacuum condition on vacuum and
response sides (J = phi_b / 2) and zero current on reflecting sides.  Each
group's matrix is assembled once, sparse, and LU-factorised on first use.
"""

from __future__ import annotations
import logging
from typing import Dict, Optional

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu

from .mesh import LEFT, RIGHT, BOTTOM, TOP

logger = logging.getLogger(__name__)


class DiffusionOperator:

    def __init__(self, mesh, materials, boundary_types: Optional[Dict[int, str]] = None):
        self.mesh = mesh
        self.materials = materials
        self.boundary_types = {s: "vacuum" for s in (LEFT, RIGHT, BOTTOM, TOP)}
        self.boundary_types.update(boundary_types or {})
        self._factors: Dict[int, object] = {}

    def _boundary_coupling(self, side: int, d: np.ndarray, h: np.ndarray) -> np.ndarray:
        if self.boundary_types[side] == "reflect":
            return np.zeros_like(d)
        return 2.0 * d / (h * (h + 4.0 * d))

    def build_1g_matrix(self, g: int) -> sparse.csc_matrix:
        mesh = self.mesh
        nx, ny = mesh.number_cells_x, mesh.number_cells_y
        mat = mesh.mat_map
        dc = self.materials.diff_coef[mat, g]                                  # [i, j]
        removal = self.materials.sigma_t[mat, g] - self.materials.sigma_s[mat, g, g]
        dx = mesh.dx[:, None] * np.ones((1, ny))
        dy = np.ones((nx, 1)) * mesh.dy[None, :]

        def idx(i, j):
            return i + j * nx

        rows, cols, vals = [], [], []
        diag = removal.astype(np.float64).copy()

        # x faces between (i, j) and (i + 1, j)
        for i in range(nx - 1):
            for j in range(ny):
                c = 2.0 * dc[i, j] * dc[i + 1, j] / (dc[i, j] * dx[i + 1, j] + dc[i + 1, j] * dx[i, j])
                for a, b in ((i, i + 1), (i + 1, i)):
                    diag[a, j] += c / dx[a, j]
                    rows.append(idx(a, j))
                    cols.append(idx(b, j))
                    vals.append(-c / dx[a, j])
        # y faces between (i, j) and (i, j + 1)
        for j in range(ny - 1):
            for i in range(nx):
                c = 2.0 * dc[i, j] * dc[i, j + 1] / (dc[i, j] * dy[i, j + 1] + dc[i, j + 1] * dy[i, j])
                for a, b in ((j, j + 1), (j + 1, j)):
                    diag[i, a] += c / dy[i, a]
                    rows.append(idx(i, a))
                    cols.append(idx(i, b))
                    vals.append(-c / dy[i, a])

        diag[0, :] += self._boundary_coupling(LEFT, dc[0, :], dx[0, :])
        diag[-1, :] += self._boundary_coupling(RIGHT, dc[-1, :], dx[-1, :])
        diag[:, 0] += self._boundary_coupling(BOTTOM, dc[:, 0], dy[:, 0])
        diag[:, -1] += self._boundary_coupling(TOP, dc[:, -1], dy[:, -1])

        n = nx * ny
        rows.extend(range(n))
        cols.extend(range(n))
        vals.extend(diag.ravel(order="F"))
        return sparse.csc_matrix((vals, (rows, cols)), shape=(n, n))

    def get_1g_operator(self, g: int):
        """Factorised group-g operator; call .solve(b)."""
        if g not in self._factors:
            logger.debug(f"Factorising diffusion operator for group {g}")
            self._factors[g] = splu(self.build_1g_matrix(g))
        return self._factors[g]
