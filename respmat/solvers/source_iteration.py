"""
Gauss-Seidel multigroup solver with within-group source iteration.

Groups are swept in increasing order using the latest fluxes of the other
groups; each group is converged by plain source iteration on its
within-group scatter.  In multiplying problems the fission source is
refreshed at the start of every Gauss-Seidel pass.  Supports reflecting
boundaries, which are refreshed before every sweep.
"""

from __future__ import annotations
import logging
import warnings

import numpy as np

from ..errors import ConvergenceWarning
from .base import InnerSolver, SolverOutput, Status

logger = logging.getLogger(__name__)


def _relative_change(new: np.ndarray, old: np.ndarray) -> float:
    norm = np.linalg.norm(new)
    diff = np.linalg.norm(new - old)
    return float(diff / norm) if norm > 0.0 else float(diff)


class SourceIteration(InnerSolver):

    def _solve_group(self, g: int, phi: np.ndarray, q_group: np.ndarray) -> int:
        ctx = self.context
        ctx.sweeper.setup_group(g)
        ctx.boundary.set_group(g)
        for it in range(1, self.cfg.inner_max_iters + 1):
            ctx.budget.check()
            ctx.boundary.update()
            q = q_group + ctx.scatter.build_within_group_source(g, phi[g])
            new = ctx.sweeper.sweep(q, g)
            err = _relative_change(new, phi[g])
            phi[g] = new
            if err < self.cfg.inner_tolerance:
                break
        return it

    def solve(self, context=None) -> SolverOutput:
        if context is not None:
            self.context = context
        ctx = self.context
        cfg = self.cfg
        G = ctx.number_groups

        if cfg.multiplying:
            ctx.fission.initialize()
            ctx.fission.setup_outer(1.0 / self.keff)
        with_fission = cfg.multiplying and ctx.fission.initialized

        ctx.boundary.set()
        phi = ctx.state.phi.copy()
        total_inners = 0
        last_inners = 0
        error = np.inf
        status = Status.MAX_ITERATIONS
        outer = 0
        for outer in range(1, cfg.outer_max_iters + 1):
            phi_old = phi.copy()
            if with_fission:
                ctx.state.phi[:] = phi
                ctx.fission.update()
            last_inners = 0
            for g in range(G):
                q_group = self.build_fixed_source(g) + ctx.scatter.build_in_scatter_source(g, phi)
                if with_fission:
                    q_group = q_group + ctx.fission.source(g)
                last_inners += self._solve_group(g, phi, q_group)
            total_inners += last_inners
            error = _relative_change(phi, phi_old)
            if error < cfg.inner_tolerance:
                status = Status.CONVERGED
                break

        ctx.state.phi[:] = phi
        if status is not Status.CONVERGED:
            msg = f"Source iteration reached {outer} passes without converging (change {error:.3e})"
            logger.warning(msg)
            warnings.warn(msg, ConvergenceWarning)

        out = SolverOutput(
            flux_error=error,
            total_inners=total_inners,
            outer_iterations=outer,
            inner_iterations=last_inners,
            status=status,
            residual_norm=error * float(np.linalg.norm(phi)),
            rhs_norm=float(np.linalg.norm(phi)),
        )
        self._log_result("SourceIteration", out)
        return out
