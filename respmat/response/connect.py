"""
Connectivity between elements of a rectangular lattice of identical cells.

The global boundary vector is ordered element-major (elements x fastest),
then side (left, right, bottom, top), then mode.  M maps the outgoing
coefficients of every element to the incident coefficients of its
neighbours:

  - an outgoing right (top) side feeds the left (bottom) side of the next
    element; the two side frames run in opposite tangential directions, so
    mode (s, a, p) picks up a factor (-1)^(s + a)
  - a reflecting outer side feeds itself unchanged
  - a vacuum outer side feeds nothing
"""

from __future__ import annotations
import logging
from typing import Dict, Optional

import numpy as np
from scipy import sparse

from ..errors import ConfigurationError
from ..transport.mesh import LEFT, RIGHT, BOTTOM, TOP, SIDE_NAMES
from .indexing import ModeIndex

logger = logging.getLogger(__name__)

OUTER_TYPES = ("vacuum", "reflect")


def crossing_parity(index: ModeIndex) -> np.ndarray:
    """(-1)^(s + a) for every mode, in mode order."""
    return np.array([(-1.0) ** (s + a) for _, s, a, _ in index])


def build_connectivity(index: ModeIndex, number_x: int = 1, number_y: int = 1,
                       bc: Optional[Dict[str, str]] = None) -> sparse.csr_matrix:
    """
    Args:
        index:     mode index of one side
        number_x:  elements along x
        number_y:  elements along y
        bc:        outer boundary type per side name ("vacuum" or "reflect");
                   unspecified sides are reflective
    """
    bc = {**{name: "reflect" for name in SIDE_NAMES}, **(bc or {})}
    for name, kind in bc.items():
        if name not in SIDE_NAMES or kind not in OUTER_TYPES:
            raise ConfigurationError(f"Invalid outer boundary '{name}': '{kind}'")
    if number_x < 1 or number_y < 1:
        raise ConfigurationError("The lattice needs at least one element in each direction")

    m = index.size
    parity = crossing_parity(index)
    identity = np.ones(m)

    def offset(ex, ey, side):
        return ((ex + ey * number_x) * 4 + side) * m

    rows, cols, vals = [], [], []

    def couple(dst, src, weights):
        rows.extend(range(dst, dst + m))
        cols.extend(range(src, src + m))
        vals.extend(weights)

    for ey in range(number_y):
        for ex in range(number_x):
            # (side, neighbour, neighbour side facing it)
            faces = (
                (LEFT, (ex - 1, ey), RIGHT),
                (RIGHT, (ex + 1, ey), LEFT),
                (BOTTOM, (ex, ey - 1), TOP),
                (TOP, (ex, ey + 1), BOTTOM),
            )
            for side, (nx_, ny_), facing in faces:
                if 0 <= nx_ < number_x and 0 <= ny_ < number_y:
                    couple(offset(ex, ey, side), offset(nx_, ny_, facing), parity)
                elif bc[SIDE_NAMES[side]] == "reflect":
                    couple(offset(ex, ey, side), offset(ex, ey, side), identity)

    n = number_x * number_y * 4 * m
    M = sparse.csr_matrix((vals, (rows, cols)), shape=(n, n))
    logger.debug(f"Connectivity: {number_x} x {number_y} elements, {n} unknowns, {M.nnz} couplings")
    return M
