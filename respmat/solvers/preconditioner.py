"""
Diffusion preconditioner for the multigroup transport operator.

    y_g = x_g + C_g^-1 q_g(x)

where C_g is the one-group diffusion loss operator and q_g(x) the scatter
(plus fission, for multiplying problems) source built from x, exactly as in
TransportOperator.  Groups are independent.
"""

from __future__ import annotations
import logging

import numpy as np
from scipy.sparse.linalg import LinearOperator

from ..transport.diffusion import DiffusionOperator
from ..transport.boundary import ReflectCondition

logger = logging.getLogger(__name__)


class DiffusionPreconditioner(LinearOperator):

    def __init__(self, context, multiplying: bool = True, keff: float = 1.0):
        self.context = context
        self.multiplying = multiplying
        self.keff = keff
        bc_types = {side: "reflect" if isinstance(bc, ReflectCondition) else "vacuum"
                    for side, bc in context.boundary.conditions.items()}
        self.diffusion = DiffusionOperator(context.mesh, context.materials, bc_types)
        n = context.number_groups * context.number_cells
        super().__init__(dtype=np.float64, shape=(n, n))

    def apply_m(self, x: np.ndarray) -> np.ndarray:
        ctx = self.context
        G, n = ctx.number_groups, ctx.number_cells
        phi = np.asarray(x, dtype=np.float64).reshape(G, n)
        with_fission = self.multiplying and ctx.fission.initialized
        if with_fission:
            ctx.state.phi[:] = phi
            ctx.fission.update()
            ctx.fission.setup_outer(1.0 / self.keff)
        y = np.empty_like(phi)
        for g in range(G):
            q = ctx.scatter.build_total_scatter_source(g, phi)
            if with_fission:
                q = q + ctx.fission.source(g)
            y[g] = phi[g] + self.diffusion.get_1g_operator(g).solve(q)
        return y.ravel()

    def _matvec(self, x):
        return self.apply_m(np.ravel(x))
