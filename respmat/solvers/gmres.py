"""
Restarted GMRES with integer termination flags.

Thin layer over scipy.sparse.linalg.gmres that reports

    flag 0  converged to the tolerance
    flag 1  iteration limit reached
    flag 2  preconditioner produced non-finite values
    flag 3  stagnated: a full restart cycle without residual reduction
    flag -1 anything else (breakdown, illegal input, non-finite iterate)

together with the relative residual and (outer, inner) iteration counts,
where inner counts the iterations of the last restart cycle.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from scipy.sparse.linalg import LinearOperator, aslinearoperator, gmres as scipy_gmres

logger = logging.getLogger(__name__)

FLAG_CONVERGED = 0
FLAG_MAX_ITERATIONS = 1
FLAG_ILL_CONDITIONED = 2
FLAG_STAGNATED = 3
FLAG_UNKNOWN = -1


@dataclass
class GmresResult:
    x: np.ndarray
    flag: int
    residual: float
    iterations: Tuple[int, int]
    residual_history: List[float] = field(default_factory=list)

    @property
    def total_inners(self) -> int:
        outer, inner = self.iterations
        return outer * inner


class _GuardedPreconditioner:
    """Wraps a preconditioner and remembers whether it ever returned non-finite values."""

    def __init__(self, op):
        self.op = aslinearoperator(op)
        self.failed = False

    def matvec(self, v):
        y = self.op.matvec(v)
        if not np.all(np.isfinite(y)):
            self.failed = True
        return y

    def as_operator(self) -> LinearOperator:
        return LinearOperator(self.op.shape, matvec=self.matvec, dtype=self.op.dtype)


def _stagnated(history: List[float], window: int) -> bool:
    if len(history) <= window:
        return False
    return history[-1] >= history[-1 - window] * (1.0 - 1e-10)


def gmres(
    operator,
    rhs: np.ndarray,
    restart: int = 20,
    tolerance: float = 1e-8,
    max_restarts: int = 40,
    left_preconditioner=None,
    right_preconditioner=None,
    initial_guess: Optional[np.ndarray] = None,
) -> GmresResult:
    """
    Solve operator @ x = rhs.

    The left preconditioner is handed to scipy (convergence is still judged
    on the true residual).  A right preconditioner R is handled by solving
    (A R) y = rhs - A x0 and returning x0 + R y.
    """
    A = aslinearoperator(operator)
    rhs = np.asarray(rhs, dtype=np.float64)
    n = rhs.shape[0]
    x0 = np.zeros(n) if initial_guess is None else np.asarray(initial_guess, dtype=np.float64)
    restart = max(1, min(restart, n))

    guards = []
    M = None
    if left_preconditioner is not None:
        guards.append(_GuardedPreconditioner(left_preconditioner))
        M = guards[-1].as_operator()

    b = rhs
    R = None
    if right_preconditioner is not None:
        guards.append(_GuardedPreconditioner(right_preconditioner))
        R = guards[-1]
        b = rhs - A.matvec(x0)
        A_eff = LinearOperator((n, n), matvec=lambda v: A.matvec(R.matvec(v)), dtype=np.float64)
        y0 = None
    else:
        A_eff = A
        y0 = x0

    history: List[float] = []

    def _count(pr_norm):
        history.append(float(pr_norm))

    y, info = scipy_gmres(
        A_eff, b, x0=y0, rtol=tolerance, atol=0.0,
        restart=restart, maxiter=max_restarts, M=M,
        callback=_count, callback_type="pr_norm",
    )
    x = x0 + R.matvec(y) if R is not None else y

    count = len(history)
    outer = max(1, math.ceil(count / restart)) if count else 0
    inner = count - (outer - 1) * restart if count else 0

    if info < 0:
        flag = FLAG_UNKNOWN
    elif any(g.failed for g in guards):
        flag = FLAG_ILL_CONDITIONED
        if not np.all(np.isfinite(x)):
            x = x0.copy()
    elif not np.all(np.isfinite(x)):
        flag = FLAG_UNKNOWN
    elif info == 0:
        flag = FLAG_CONVERGED
    elif _stagnated(history, restart):
        flag = FLAG_STAGNATED
    else:
        flag = FLAG_MAX_ITERATIONS

    rhs_norm = float(np.linalg.norm(rhs))
    res_norm = float(np.linalg.norm(rhs - A.matvec(x)))
    residual = res_norm / rhs_norm if rhs_norm > 0.0 else res_norm

    logger.debug(f"gmres: flag={flag} outer={outer} inner={inner} residual={residual:.3e}")
    return GmresResult(x=x, flag=flag, residual=residual,
                       iterations=(outer, inner), residual_history=history)
