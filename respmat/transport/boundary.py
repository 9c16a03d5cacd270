"""
Boundary angular flux container and boundary conditions.

BoundaryMesh stores, for every group and side, incident and outgoing angular
fluxes as arrays [octant, boundary cell, angle] (cells in global index order,
angles in quadrature order).  Only the two octants entering (leaving) a side
are ever populated for the incident (outgoing) direction.

Conditions:
  VacuumCondition    zero incident flux
  ReflectCondition   incident flux = outgoing flux of the mirrored octant
  ResponseCondition  a single polynomial mode (group, space, azimuth, polar)
                     entering one side; zero in every other group
"""

from __future__ import annotations
import logging
from typing import Dict, Optional

import numpy as np

from ..errors import ConfigurationError
from .basis import discrete_legendre
from .frames import SIDE_FRAMES, mirror_halves, split_half_range
from .mesh import LEFT, RIGHT, BOTTOM, TOP, SIDE_NAMES
from .quadrature import OCTANT_SIGNS

logger = logging.getLogger(__name__)

IN, OUT = 0, 1

# Octant seen after reflection off a vertical (left/right) or horizontal side
_REFLECT_V = (1, 0, 3, 2)
_REFLECT_H = (3, 2, 1, 0)


class BoundaryCondition:
    """Base boundary condition: set() once per solve, update() before each group sweep."""

    def __init__(self, side: int):
        self.side = side

    def set(self, boundary: "BoundaryMesh", g: int):
        boundary.psi[g][self.side][IN][:] = 0.0

    def update(self, boundary: "BoundaryMesh", g: int):
        pass


class VacuumCondition(BoundaryCondition):
    pass


class ReflectCondition(BoundaryCondition):

    def update(self, boundary: "BoundaryMesh", g: int):
        mirror = _REFLECT_V if self.side in (LEFT, RIGHT) else _REFLECT_H
        psi = boundary.psi[g][self.side]
        for octant in SIDE_FRAMES[self.side].incident:
            psi[IN][octant] = psi[OUT][mirror[octant]]


class ResponseCondition(BoundaryCondition):
    """
    Incident boundary flux equal to one tensor-product basis mode:

        psi_in(x, azimuth, polar) = amplitude * P_s(x) * P_a(azimuth) * P_p(polar)

    in group `group` only, laid out in the side frame of `side`.
    """

    def __init__(self, side: int, group: int, order_space: int = 0,
                 order_azimuth: int = 0, order_polar: int = 0, amplitude: float = 1.0):
        super().__init__(side)
        self.group = group
        self.order_space = order_space
        self.order_azimuth = order_azimuth
        self.order_polar = order_polar
        self.amplitude = amplitude

    def set(self, boundary: "BoundaryMesh", g: int):
        super().set(boundary, g)
        if g != self.group:
            return
        frame = SIDE_FRAMES[self.side]
        quad = boundary.quadrature
        n_space = boundary.mesh.number_cells_on_side(self.side)
        space = discrete_legendre(n_space, self.order_space)[:, self.order_space]
        if frame.reverse_space:
            space = space[::-1]
        azimuth = discrete_legendre(2 * quad.number_azimuth, self.order_azimuth)[:, self.order_azimuth]
        if frame.mirror_azimuth:
            azimuth = mirror_halves(azimuth)
        polar = discrete_legendre(quad.number_polar, self.order_polar)[:, self.order_polar]

        values = self.amplitude * np.einsum("s,a,p->sap", space, azimuth, polar)
        first, second = split_half_range(values)
        psi_in = boundary.psi[g][self.side][IN]
        psi_in[frame.incident[0]] = first
        psi_in[frame.incident[1]] = second


def make_condition(kind: str, side: int) -> BoundaryCondition:
    if kind == "vacuum":
        return VacuumCondition(side)
    if kind == "reflect":
        return ReflectCondition(side)
    raise ConfigurationError(
        f"Boundary type '{kind}' on {SIDE_NAMES[side]} needs explicit parameters; "
        "pass a ResponseCondition instead"
    )


class BoundaryMesh:
    """
    Boundary angular fluxes for all groups and sides.

    Args:
        mesh:           Mesh2D
        quadrature:     ProductQuadrature
        number_groups:  G
        conditions:     side -> BoundaryCondition or boundary type name;
                        unspecified sides are vacuum
    """

    def __init__(self, mesh, quadrature, number_groups: int,
                 conditions: Optional[Dict[int, object]] = None):
        self.mesh = mesh
        self.quadrature = quadrature
        self.number_groups = number_groups
        self.conditions: Dict[int, BoundaryCondition] = {}
        for side in (LEFT, RIGHT, BOTTOM, TOP):
            bc = (conditions or {}).get(side, "vacuum")
            self.conditions[side] = make_condition(bc, side) if isinstance(bc, str) else bc
        n_ang = quadrature.number_angles_octant
        self.psi = [
            {side: np.zeros((2, 4, mesh.number_cells_on_side(side), n_ang))
             for side in (LEFT, RIGHT, BOTTOM, TOP)}
            for _ in range(number_groups)
        ]
        self.g = 0

    def has_reflection(self) -> bool:
        return any(isinstance(bc, ReflectCondition) for bc in self.conditions.values())

    def set_group(self, g: int):
        self.g = g

    def initialize(self, g: int):
        """Select group g for reading back boundary fluxes."""
        self.g = g

    def set(self):
        """Apply every boundary condition in every group."""
        for g in range(self.number_groups):
            for bc in self.conditions.values():
                bc.set(self, g)

    def update(self):
        """Refresh incident fluxes of the current group (reflection only)."""
        for bc in self.conditions.values():
            bc.update(self, self.g)

    def reset(self):
        """Zero all incident fluxes."""
        for g in range(self.number_groups):
            for side in self.psi[g].values():
                side[IN][:] = 0.0

    # Access used by the sweeper (current group)

    def incident(self, side: int, octant: int) -> np.ndarray:
        return self.psi[self.g][side][IN][octant]

    def set_outgoing(self, side: int, octant: int, values: np.ndarray):
        self.psi[self.g][side][OUT][octant] = values

    # Read-back by octant and direction; the side follows from the octant signs

    def get_psi_v_octant(self, octant: int, direction: int) -> np.ndarray:
        """[cell along y, angle] on the left or right side."""
        leaving_left = OCTANT_SIGNS[octant, 0] < 0.0
        side = LEFT if leaving_left == (direction == OUT) else RIGHT
        return self.psi[self.g][side][direction][octant]

    def get_psi_h_octant(self, octant: int, direction: int) -> np.ndarray:
        """[cell along x, angle] on the bottom or top side."""
        leaving_bottom = OCTANT_SIGNS[octant, 1] < 0.0
        side = BOTTOM if leaving_bottom == (direction == OUT) else TOP
        return self.psi[self.g][side][direction][octant]

    def outgoing(self, side: int, octant: int) -> np.ndarray:
        if side in (LEFT, RIGHT):
            return self.get_psi_v_octant(octant, OUT)
        return self.get_psi_h_octant(octant, OUT)
