"""
Two-dimensional Cartesian mesh.

Cells are addressed as (i, j) with i along x and j along y; the flattened cell
index is i + j * number_cells_x.  Side constants follow the ordering used for
boundary data and response blocks: LEFT, RIGHT, BOTTOM, TOP.
"""

from __future__ import annotations
from typing import Sequence

import numpy as np

from ..errors import ConfigurationError

LEFT, RIGHT, BOTTOM, TOP = 0, 1, 2, 3
SIDE_NAMES = ("left", "right", "bottom", "top")


def _fine_widths(coarse_edges: Sequence[float], fine_counts: Sequence[int]) -> np.ndarray:
    edges = np.asarray(coarse_edges, dtype=np.float64)
    counts = np.asarray(fine_counts, dtype=np.int64)
    if len(edges) != len(counts) + 1:
        raise ConfigurationError(
            f"{len(edges)} coarse edges given for {len(counts)} coarse regions"
        )
    if np.any(np.diff(edges) <= 0.0) or np.any(counts < 1):
        raise ConfigurationError("Coarse edges must increase and fine counts must be positive")
    return np.concatenate([np.full(n, (hi - lo) / n) for lo, hi, n in zip(edges[:-1], edges[1:], counts)])


class Mesh2D:
    """
    Cartesian mesh built from coarse regions.

    Args:
        xfm, yfm:   fine cells per coarse region along x / y
        xcm, ycm:   coarse region edges along x / y (cm)
        coarse_map: material index per coarse region, shape [n_coarse_x, n_coarse_y]
    """

    def __init__(self, xfm, yfm, xcm, ycm, coarse_map):
        self.dx = _fine_widths(xcm, xfm)
        self.dy = _fine_widths(ycm, yfm)
        coarse_map = np.asarray(coarse_map, dtype=np.int64)
        if coarse_map.shape != (len(xfm), len(yfm)):
            raise ConfigurationError(
                f"coarse_map shape {coarse_map.shape} does not match "
                f"({len(xfm)}, {len(yfm)}) coarse regions"
            )
        # Expand coarse materials onto fine cells
        self.mat_map = np.repeat(np.repeat(coarse_map, xfm, axis=0), yfm, axis=1)

    @classmethod
    def uniform(cls, number_x: int, number_y: int, width_x: float, width_y: float,
                material: int = 0) -> "Mesh2D":
        """Homogeneous mesh with equal cells."""
        return cls([number_x], [number_y], [0.0, width_x], [0.0, width_y], [[material]])

    @classmethod
    def from_pin_map(cls, pin_map, pitch: float, cells_per_pin: int) -> "Mesh2D":
        """
        Lattice of homogenised square pins.

        pin_map is given as a picture (first row = top of the lattice), as
        lattice maps are usually written.
        """
        picture = np.asarray(pin_map, dtype=np.int64)
        ny, nx = picture.shape
        coarse_map = picture[::-1, :].T
        xcm = pitch * np.arange(nx + 1)
        ycm = pitch * np.arange(ny + 1)
        return cls([cells_per_pin] * nx, [cells_per_pin] * ny, xcm, ycm, coarse_map)

    @property
    def number_cells_x(self) -> int:
        return len(self.dx)

    @property
    def number_cells_y(self) -> int:
        return len(self.dy)

    @property
    def number_cells(self) -> int:
        return self.number_cells_x * self.number_cells_y

    @property
    def width_x(self) -> float:
        return float(self.dx.sum())

    @property
    def width_y(self) -> float:
        return float(self.dy.sum())

    @property
    def mat(self) -> np.ndarray:
        """Material index per flattened cell (x fastest)."""
        return self.mat_map.ravel(order="F")

    def volumes(self) -> np.ndarray:
        return np.outer(self.dx, self.dy).ravel(order="F")

    def number_cells_on_side(self, side: int) -> int:
        return self.number_cells_y if side in (LEFT, RIGHT) else self.number_cells_x

    def is_square_symmetric(self) -> bool:
        """True if the mesh and materials are invariant under 90 degree rotation."""
        if self.number_cells_x != self.number_cells_y or not np.allclose(self.dx, self.dy):
            return False
        if not np.allclose(self.dx, self.dx[::-1]):
            return False
        return bool(np.array_equal(self.mat_map, np.rot90(self.mat_map)))
