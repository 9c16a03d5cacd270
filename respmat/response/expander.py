"""
Response expansion: one fixed-source solve per incident boundary mode.

For every mode k = (g, s, a, p) a unit incident flux P_s(x) P_a(azimuth)
P_p(polar) in group g enters the left side; all other sides are vacuum.
After the solve, the outgoing angular flux on each side is projected onto the
same tensor-product basis, giving column k of the four coefficient blocks

    coef[side][i, k] = < psi_out(side, group(i)), P_s(i) P_a(i) P_p(i) >

Each mode owns a fresh SolveContext and solver, so modes can run in separate
processes.
"""

from __future__ import annotations
import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..errors import ConfigurationError, SolverError
from ..solvers import get_solver, SolverOutput
from ..transport.basis import discrete_legendre
from ..transport.boundary import ResponseCondition
from ..transport.context import SolveContext, RunBudget
from ..transport.frames import SIDE_FRAMES, gather_half_range, mirror_halves
from ..transport.mesh import LEFT, RIGHT, BOTTOM, TOP
from ..transport.quadrature import ProductQuadrature
from .indexing import ModeIndex

logger = logging.getLogger(__name__)

SIDES = (LEFT, RIGHT, BOTTOM, TOP)


@dataclass
class Expansion:
    """Coefficient blocks [side, row, column] plus per-mode solver outputs."""
    coef: np.ndarray
    outputs: List[Optional[SolverOutput]]
    failed_modes: List[int] = field(default_factory=list)

    def block(self, side: int) -> np.ndarray:
        return self.coef[side]


def _solve_mode(expander: "ResponseExpander", k: int):
    # Module level so it pickles for process pools
    return expander.solve_mode(k)


class ResponseExpander:
    """
    Args:
        mesh, materials: the cell to characterise (shared read-only)
        solver_cfg:      SolverConfig for every inner solve; its boundary
                         types are ignored (left = response, others vacuum)
        response_cfg:    ResponseConfig (orders, keff, workers, failure policy)
    """

    def __init__(self, mesh, materials, solver_cfg, response_cfg):
        self.mesh = mesh
        self.materials = materials
        self.solver_cfg = solver_cfg
        self.response_cfg = response_cfg
        self.quadrature = ProductQuadrature(solver_cfg.number_azimuth, solver_cfg.number_polar)
        self.index = ModeIndex(materials.number_groups, response_cfg.max_order_space,
                               response_cfg.max_order_azimuth, response_cfg.max_order_polar)
        self._check_orders()
        self.basis_space = {
            side: discrete_legendre(mesh.number_cells_on_side(side), response_cfg.max_order_space)
            for side in SIDES
        }
        self.basis_azimuth = discrete_legendre(2 * self.quadrature.number_azimuth,
                                               response_cfg.max_order_azimuth)
        self.basis_polar = discrete_legendre(self.quadrature.number_polar,
                                             response_cfg.max_order_polar)

    def _check_orders(self):
        cfg = self.response_cfg
        n_space = min(self.mesh.number_cells_x, self.mesh.number_cells_y)
        limits = (
            ("space", cfg.max_order_space, n_space),
            ("azimuth", cfg.max_order_azimuth, 2 * self.quadrature.number_azimuth),
            ("polar", cfg.max_order_polar, self.quadrature.number_polar),
        )
        for name, order, points in limits:
            if order > points - 1:
                raise ConfigurationError(
                    f"max {name} order {order} needs at least {order + 1} points, have {points}"
                )

    @property
    def number_modes(self) -> int:
        return self.index.size

    def make_context(self, k: int, side: int = LEFT, amplitude: float = 1.0) -> SolveContext:
        g, s, a, p = self.index.unravel(k)
        condition = ResponseCondition(side, g, s, a, p, amplitude=amplitude)
        return SolveContext(self.mesh, self.materials, self.quadrature, {side: condition},
                            budget=RunBudget(self.solver_cfg.max_seconds))

    def project(self, boundary) -> Dict[int, np.ndarray]:
        """Expansion coefficients of the outgoing flux on every side (one column per side)."""
        Bp = self.basis_polar
        columns = {}
        for side in SIDES:
            frame = SIDE_FRAMES[side]
            Bs = self.basis_space[side]
            Ba = mirror_halves(self.basis_azimuth) if frame.mirror_azimuth else self.basis_azimuth
            column = np.zeros(self.index.size)
            for g in range(self.materials.number_groups):
                boundary.initialize(g)
                combined = gather_half_range(boundary.outgoing(side, frame.outgoing[0]),
                                             boundary.outgoing(side, frame.outgoing[1]),
                                             self.quadrature.number_polar)
                if frame.reverse_space:
                    combined = combined[::-1]
                c = np.einsum("sap,si,aj,pk->ijk", combined, Bs, Ba, Bp)
                column[self.index.group_slice(g)] = c.ravel()
            columns[side] = column
        return columns

    def solve_mode(self, k: int, side: int = LEFT, amplitude: float = 1.0
                   ) -> Tuple[Dict[int, np.ndarray], SolverOutput]:
        """Solve for incident mode k on `side` and project the outgoing flux."""
        ctx = self.make_context(k, side, amplitude)
        solver = get_solver(self.solver_cfg.inner_solver, ctx, self.solver_cfg,
                            keff=self.response_cfg.keff)
        out = solver.solve()
        columns = self.project(ctx.boundary)
        ctx.fission.reset()
        return columns, out

    def _record(self, expansion: Expansion, k: int, result):
        columns, out = result
        for side in SIDES:
            expansion.coef[side][:, k] = columns[side]
        expansion.outputs[k] = out

    def _fail(self, expansion: Expansion, k: int, exc: SolverError):
        g, s, a, p = self.index.unravel(k)
        if self.response_cfg.on_failure == "raise":
            logger.error(f"Mode {k} (g={g}, s={s}, a={a}, p={p}) failed: {exc}")
            raise exc
        logger.warning(f"Mode {k} (g={g}, s={s}, a={a}, p={p}) failed, column left zero: {exc}")
        expansion.failed_modes.append(k)

    def expand(self) -> Expansion:
        n = self.index.size
        expansion = Expansion(coef=np.zeros((4, n, n)), outputs=[None] * n)
        logger.info(f"Expanding {n} incident modes over {self.mesh.number_cells} cells "
                    f"({self.response_cfg.n_workers} worker(s))")

        progress = None
        if self.response_cfg.show_progress:
            from tqdm import tqdm
            progress = tqdm(total=n, desc="Response modes")

        try:
            if self.response_cfg.n_workers > 1:
                with ProcessPoolExecutor(max_workers=self.response_cfg.n_workers) as pool:
                    futures = [pool.submit(_solve_mode, self, k) for k in range(n)]
                    try:
                        for k, future in enumerate(futures):
                            try:
                                self._record(expansion, k, future.result())
                            except SolverError as exc:
                                self._fail(expansion, k, exc)
                            if progress is not None:
                                progress.update(1)
                    except BaseException:
                        for future in futures:
                            future.cancel()
                        raise
            else:
                for k in range(n):
                    try:
                        self._record(expansion, k, self.solve_mode(k))
                    except SolverError as exc:
                        self._fail(expansion, k, exc)
                    if progress is not None:
                        progress.update(1)
        finally:
            if progress is not None:
                progress.close()

        if expansion.failed_modes:
            logger.warning(f"{len(expansion.failed_modes)} of {n} modes failed: {expansion.failed_modes}")
        return expansion
