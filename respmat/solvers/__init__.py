from .base import InnerSolver, SolverOutput, Status
from .gmres import gmres, GmresResult
from .krylov_mg import KrylovMG, TransportOperator
from .preconditioner import DiffusionPreconditioner
from .source_iteration import SourceIteration

from ..errors import ConfigurationError

_SOLVERS = {
    "krylov": KrylovMG,
    "si": SourceIteration,
}


def get_solver(name: str, context, cfg, keff=None):
    """
    Factory function to get an inner solver by name.

    "krylov" cannot handle reflecting boundaries; "si" can.
    """
    if name not in _SOLVERS:
        raise ConfigurationError(f"Unknown solver: {name}. Choose from: {', '.join(_SOLVERS)}")
    solver = _SOLVERS[name](context, cfg)
    if keff is not None:
        solver.set_keff(keff)
    return solver
