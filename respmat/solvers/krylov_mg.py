"""
Krylov multigroup solver.

Solves the full multigroup fixed-source problem (all groups at once) with
GMRES applied to

    (I - T S) phi = B

where T is the transport sweep, S the group-to-group scatter (plus fission
divided by keff in multiplying problems) and B the uncollided flux due to the
fixed sources and incident boundary flux.  The operator never forms a matrix:
each application is one sweep per group with vacuum incident flux.

Reflecting boundaries are not supported (use SourceIteration).
"""

from __future__ import annotations
import logging
import warnings

import numpy as np
from scipy.sparse.linalg import LinearOperator

from ..errors import ConfigurationError, ConvergenceWarning, SolverError
from .base import InnerSolver, SolverOutput, Status
from .gmres import (gmres, FLAG_CONVERGED, FLAG_MAX_ITERATIONS,
                    FLAG_ILL_CONDITIONED, FLAG_STAGNATED)
from .preconditioner import DiffusionPreconditioner

logger = logging.getLogger(__name__)

_FLAG_STATUS = {
    FLAG_CONVERGED: Status.CONVERGED,
    FLAG_MAX_ITERATIONS: Status.MAX_ITERATIONS,
    FLAG_ILL_CONDITIONED: Status.ILL_CONDITIONED_PRECONDITIONER,
    FLAG_STAGNATED: Status.STAGNATED,
}

_STATUS_MESSAGE = {
    Status.MAX_ITERATIONS: "GMRES reached its iteration limit without converging",
    Status.ILL_CONDITIONED_PRECONDITIONER: "GMRES preconditioner was ill-conditioned",
    Status.STAGNATED: "GMRES stagnated",
}


class TransportOperator(LinearOperator):
    """x -> x - T S x over the flattened, group-major multigroup flux."""

    def __init__(self, context, multiplying: bool = True, keff: float = 1.0):
        self.context = context
        self.multiplying = multiplying
        self.keff = keff
        self.number_applications = 0
        n = context.number_groups * context.number_cells
        super().__init__(dtype=np.float64, shape=(n, n))

    def apply(self, x: np.ndarray) -> np.ndarray:
        ctx = self.context
        ctx.budget.check()
        self.number_applications += 1
        G, n = ctx.number_groups, ctx.number_cells
        phi = np.asarray(x, dtype=np.float64).reshape(G, n)

        with_fission = self.multiplying and ctx.fission.initialized
        if with_fission:
            ctx.state.phi[:] = phi
            ctx.fission.update()
            ctx.fission.setup_outer(1.0 / self.keff)

        y = np.empty_like(phi)
        for g in range(G):
            ctx.sweeper.setup_group(g)
            ctx.boundary.set_group(g)
            ctx.boundary.update()
            q = ctx.scatter.build_total_scatter_source(g, phi)
            if with_fission:
                q = q + ctx.fission.source(g)
            y[g] = phi[g] - ctx.sweeper.sweep(q, g)
        return y.ravel()

    def _matvec(self, x):
        return self.apply(np.ravel(x))


class KrylovMG(InnerSolver):
    """
    Args:
        context: SolveContext holding the problem state
        cfg:     SolverConfig (inner_tolerance, gmres_restart, gmres_max_restarts,
                 precondition, multiplying, keff, print_out)
    """

    def __init__(self, context, cfg):
        if context.boundary.has_reflection():
            raise ConfigurationError("Krylov solver does not support reflecting boundaries")
        super().__init__(context, cfg)

    def set_keff(self, keff: float):
        if keff <= 0.0:
            raise ConfigurationError(f"keff must be positive, got {keff}")
        super().set_keff(keff)

    def build_fixed_sweep_source(self, g: int) -> np.ndarray:
        return self.build_fixed_source(g)

    def build_rhs(self) -> np.ndarray:
        """Uncollided flux from the fixed sources and incident boundary flux."""
        ctx = self.context
        G, n = ctx.number_groups, ctx.number_cells
        B = np.zeros((G, n))
        for g in range(G):
            ctx.sweeper.setup_group(g)
            ctx.boundary.set_group(g)
            ctx.boundary.update()
            B[g] = ctx.sweeper.sweep(self.build_fixed_sweep_source(g), g)
        return B.ravel()

    def _closure_sweep(self, phi: np.ndarray):
        """One sweep per group from the converged flux so outgoing boundary fluxes match it."""
        ctx = self.context
        ctx.boundary.set()
        with_fission = self.cfg.multiplying and ctx.fission.initialized
        if with_fission:
            ctx.fission.update()
            ctx.fission.setup_outer(1.0 / self.keff)
        for g in range(ctx.number_groups):
            ctx.sweeper.setup_group(g)
            ctx.boundary.set_group(g)
            ctx.boundary.update()
            q = ctx.scatter.build_total_scatter_source(g, phi)
            if with_fission:
                q = q + ctx.fission.source(g)
            ctx.sweeper.sweep(q + self.build_fixed_sweep_source(g), g)

    def solve(self, context=None) -> SolverOutput:
        if context is not None:
            if context.boundary.has_reflection():
                raise ConfigurationError("Krylov solver does not support reflecting boundaries")
            self.context = context
        ctx = self.context
        cfg = self.cfg
        G, n = ctx.number_groups, ctx.number_cells

        if cfg.multiplying:
            ctx.fission.initialize()

        ctx.boundary.set()
        B = self.build_rhs()
        ctx.boundary.reset()

        operator = TransportOperator(ctx, cfg.multiplying, self.keff)
        precond = DiffusionPreconditioner(ctx, cfg.multiplying, self.keff) if cfg.precondition else None
        result = gmres(
            operator, B,
            restart=cfg.gmres_restart,
            tolerance=cfg.inner_tolerance,
            max_restarts=cfg.gmres_max_restarts,
            left_preconditioner=precond,
            initial_guess=B,
        )

        status = _FLAG_STATUS.get(result.flag, Status.UNKNOWN)
        if status is Status.UNKNOWN:
            raise SolverError(f"GMRES returned unknown flag {result.flag}")

        phi = result.x.reshape(G, n)
        for g in range(G):
            ctx.state.set_phi(g, phi[g])
        rhs_norm = float(np.linalg.norm(B))
        residual_norm = result.residual * rhs_norm if rhs_norm > 0.0 else result.residual
        self._closure_sweep(phi)

        if status is not Status.CONVERGED:
            msg = f"{_STATUS_MESSAGE[status]} (relative residual {result.residual:.3e})"
            logger.warning(msg)
            warnings.warn(msg, ConvergenceWarning)

        outer, inner = result.iterations
        out = SolverOutput(
            flux_error=result.residual,
            total_inners=result.total_inners,
            outer_iterations=outer,
            inner_iterations=inner,
            status=status,
            residual_norm=residual_norm,
            rhs_norm=rhs_norm,
        )
        self._log_result("KrylovMG", out)
        return out
