"""
Exception and warning types shared by the solvers and the response pipeline.

ConfigurationError  – bad input detected at construction time (fatal, pre-solve)
ConvergenceWarning  – GMRES stopped short of the tolerance (non-fatal)
SolverError         – the iteration ended in a state with no usable result (fatal)
BudgetExceeded      – a run used up its wall-clock budget (fatal for that run)
"""


class ConfigurationError(ValueError):
    """Unsupported or inconsistent problem configuration."""


class ConvergenceWarning(UserWarning):
    """Inner solve returned its best estimate without meeting the tolerance."""


class SolverError(RuntimeError):
    """Inner solve ended in an unknown or unrecoverable state."""


class BudgetExceeded(SolverError):
    """Per-run time budget exhausted; the iteration was stopped cooperatively."""
