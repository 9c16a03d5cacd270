"""
Side frames: how boundary cells and boundary directions are ordered on each
side of a square cell.

Every side carries a local frame (outward normal n, tangent t) obtained by
rotating the left-side frame (n = -x, t = +y):

    side     rotation   n      t      outgoing octants   incident octants
    left        0      -x     +y          (2, 1)             (3, 0)
    bottom    +90      -y     -x          (3, 2)             (0, 1)
    right     180      +x     -y          (0, 3)             (1, 2)
    top       -90      +y     +x          (1, 0)             (2, 3)

Boundary cells are ordered along t, so sides whose t runs against the global
cell index (right, bottom) are spatially reversed.  Directions crossing a
side are ordered by their tangential component, increasing.  Both the
incident and the outgoing half-range span two octants; they are concatenated
as (first octant with azimuths reversed, second octant as stored).  For the
left and right sides that order is already monotone in the tangential
component.  For bottom and top it is monotone within each half but backwards,
which is absorbed by mirroring each half of the azimuthal basis column.

Because all frames are rotations of one another, a response computed for
incidence on the left side gives the response for any other incident side of
a rotationally symmetric cell by relabelling sides only.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .mesh import LEFT, RIGHT, BOTTOM, TOP


@dataclass(frozen=True)
class SideFrame:
    side: int
    outgoing: Tuple[int, int]
    incident: Tuple[int, int]
    reverse_space: bool
    mirror_azimuth: bool

    @property
    def vertical(self) -> bool:
        return self.side in (LEFT, RIGHT)


SIDE_FRAMES = {
    LEFT:   SideFrame(LEFT,   outgoing=(2, 1), incident=(3, 0), reverse_space=False, mirror_azimuth=False),
    RIGHT:  SideFrame(RIGHT,  outgoing=(0, 3), incident=(1, 2), reverse_space=True,  mirror_azimuth=False),
    BOTTOM: SideFrame(BOTTOM, outgoing=(3, 2), incident=(0, 1), reverse_space=True,  mirror_azimuth=True),
    TOP:    SideFrame(TOP,    outgoing=(1, 0), incident=(2, 3), reverse_space=False, mirror_azimuth=True),
}


def mirror_halves(vector: np.ndarray) -> np.ndarray:
    """Reverse each half of a vector (or of the rows of a matrix)."""
    half = vector.shape[0] // 2
    return np.concatenate([vector[:half][::-1], vector[half:][::-1]])


def gather_half_range(first: np.ndarray, second: np.ndarray, number_polar: int) -> np.ndarray:
    """
    Combine two octant arrays [space, azimuth * polar] into one array
    [space, 2 * azimuth, polar] in local azimuthal order.
    """
    n_space = first.shape[0]
    first = first.reshape(n_space, -1, number_polar)[:, ::-1, :]
    second = second.reshape(n_space, -1, number_polar)
    return np.concatenate([first, second], axis=1)


def split_half_range(values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of gather_half_range: [space, 2 * azimuth, polar] -> two octant arrays."""
    n_space, n_az2, n_polar = values.shape
    half = n_az2 // 2
    first = values[:, :half, :][:, ::-1, :].reshape(n_space, half * n_polar)
    second = values[:, half:, :].reshape(n_space, half * n_polar)
    return first, second
