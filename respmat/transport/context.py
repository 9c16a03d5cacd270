"""
Per-run solve context.

Everything a single fixed-source solve mutates (flux state, boundary fluxes,
fission density, sweep scratch) lives in one SolveContext, so independent
runs never share writable data.  Mesh, materials and quadrature are shared
read-only.
"""

from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..errors import BudgetExceeded, ConfigurationError
from .boundary import BoundaryMesh
from .mesh import SIDE_NAMES
from .quadrature import ProductQuadrature
from .sources import State, ScatterSource, FissionSource, ExternalSource
from .sweeper import Sweeper2D


@dataclass
class RunBudget:
    """Wall-clock budget for one run; check() raises once it is used up."""
    max_seconds: Optional[float] = None
    started: float = field(default_factory=time.monotonic)

    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def check(self):
        if self.max_seconds is not None and self.elapsed() > self.max_seconds:
            raise BudgetExceeded(
                f"Run exceeded its budget of {self.max_seconds:.3g} s "
                f"(elapsed {self.elapsed():.3g} s)"
            )


class SolveContext:
    """
    Args:
        mesh, materials: shared problem description
        quadrature:      ProductQuadrature
        conditions:      side -> BoundaryCondition or boundary type name
        external:        ExternalSource (defaults to none)
        budget:          RunBudget (defaults to unlimited)
    """

    def __init__(self, mesh, materials, quadrature: ProductQuadrature,
                 conditions: Optional[Dict[int, object]] = None,
                 external: Optional[ExternalSource] = None,
                 budget: Optional[RunBudget] = None):
        G = materials.number_groups
        n = mesh.number_cells
        if int(mesh.mat_map.max()) >= materials.number_materials:
            raise ConfigurationError(
                f"Mesh references material {int(mesh.mat_map.max())} but only "
                f"{materials.number_materials} are defined"
            )
        if external is not None and external.q.shape != (G, n):
            raise ConfigurationError(
                f"External source has shape {external.q.shape}, expected {(G, n)}"
            )
        self.mesh = mesh
        self.materials = materials
        self.quadrature = quadrature
        self.state = State(G, n)
        self.boundary = BoundaryMesh(mesh, quadrature, G, conditions)
        self.scatter = ScatterSource(mesh, materials)
        self.fission = FissionSource(self.state, mesh, materials)
        self.external = external if external is not None else ExternalSource(n, G)
        self.sweeper = Sweeper2D(mesh, materials, quadrature, self.boundary)
        self.budget = budget if budget is not None else RunBudget()

    @property
    def number_groups(self) -> int:
        return self.materials.number_groups

    @property
    def number_cells(self) -> int:
        return self.mesh.number_cells

    @classmethod
    def from_config(cls, mesh, materials, cfg, conditions=None, external=None) -> "SolveContext":
        """Build a context from a SolverConfig; explicit conditions override cfg.bc."""
        if cfg.number_groups != materials.number_groups:
            raise ConfigurationError(
                f"Config has {cfg.number_groups} groups but materials have {materials.number_groups}"
            )
        sides = {SIDE_NAMES.index(name): kind for name, kind in cfg.bc.items() if kind != "response"}
        sides.update(conditions or {})
        missing = [name for name, kind in cfg.bc.items()
                   if kind == "response" and SIDE_NAMES.index(name) not in sides]
        if missing:
            raise ConfigurationError(f"Response boundary on {missing} needs a ResponseCondition")
        quadrature = ProductQuadrature(cfg.number_azimuth, cfg.number_polar)
        return cls(mesh, materials, quadrature, sides, external, RunBudget(cfg.max_seconds))
