"""Common interface and result type for inner (within-outer) solvers."""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any

import numpy as np

logger = logging.getLogger(__name__)


class Status(str, enum.Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    ILL_CONDITIONED_PRECONDITIONER = "ill_conditioned_preconditioner"
    STAGNATED = "stagnated"
    UNKNOWN = "unknown"

    @property
    def fatal(self) -> bool:
        return self is Status.UNKNOWN


@dataclass
class SolverOutput:
    flux_error: float
    total_inners: int
    outer_iterations: int
    inner_iterations: int
    status: Status
    residual_norm: float = 0.0
    rhs_norm: float = 0.0

    @property
    def converged(self) -> bool:
        return self.status is Status.CONVERGED

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


class InnerSolver:
    """
    Solves the multigroup fixed-source problem held by a SolveContext.

    Subclasses implement solve(); the flux is left in context.state and the
    outgoing boundary fluxes in context.boundary.
    """

    def __init__(self, context, cfg):
        self.context = context
        self.cfg = cfg
        self.keff = cfg.keff

    def set_keff(self, keff: float):
        self.keff = float(keff)

    def build_fixed_source(self, g: int) -> np.ndarray:
        """External source, plus fission when fission is not on the left hand side."""
        ctx = self.context
        q = np.zeros(ctx.number_cells)
        if ctx.external.initialized:
            q += ctx.external.source(g)
        if not self.cfg.multiplying and ctx.fission.initialized:
            q += ctx.fission.source(g)
        return q

    def solve(self) -> SolverOutput:
        raise NotImplementedError

    def _log_result(self, name: str, out: SolverOutput):
        msg = (f"{name}: {out.status.value}  outers={out.outer_iterations} "
               f"inners={out.inner_iterations} total={out.total_inners} "
               f"flux_error={out.flux_error:.3e}")
        if self.cfg.print_out:
            logger.info(msg)
        else:
            logger.debug(msg)
