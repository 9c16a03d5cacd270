"""
Configuration dataclasses for inner solves and response generation.
These mirror the JSON run files accepted by generate_responses.py and provide typed access.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict, fields
from typing import Optional, Dict, Any

from ..errors import ConfigurationError

SIDES = ("left", "right", "bottom", "top")
BOUNDARY_TYPES = ("vacuum", "reflect", "response")
INNER_SOLVERS = ("krylov", "si")


def _from_dict(cls, d: Dict[str, Any]):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(d) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} keys: {unknown}")
    return cls(**d)


@dataclass
class SolverConfig:
    number_groups: int = 1
    # Inner iteration
    inner_solver: str = "krylov"
    inner_tolerance: float = 1e-8
    inner_max_iters: int = 100
    # Gauss-Seidel passes over the groups (source iteration only)
    outer_max_iters: int = 100
    gmres_restart: int = 20
    gmres_max_restarts: int = 40
    precondition: bool = False
    # Fixed-source multiplication: fission on the left hand side, scaled by 1/keff
    multiplying: bool = True
    keff: float = 1.0
    # Boundary condition per side: vacuum | reflect | response
    bc: Dict[str, str] = field(default_factory=lambda: {s: "vacuum" for s in SIDES})
    # Quadrature (per octant)
    number_azimuth: int = 2
    number_polar: int = 1
    # Per-run wall-clock budget in seconds (None = unlimited)
    max_seconds: Optional[float] = None
    print_out: bool = False

    def __post_init__(self):
        self.bc = {**{s: "vacuum" for s in SIDES}, **dict(self.bc)}
        for side, kind in self.bc.items():
            if side not in SIDES:
                raise ConfigurationError(f"Unknown boundary side: {side}. Choose from: {SIDES}")
            if kind not in BOUNDARY_TYPES:
                raise ConfigurationError(
                    f"Unknown boundary type '{kind}' on {side}. Choose from: {BOUNDARY_TYPES}"
                )
        if self.inner_solver not in INNER_SOLVERS:
            raise ConfigurationError(
                f"Unknown inner solver: {self.inner_solver}. Choose from: {INNER_SOLVERS}"
            )
        if self.number_groups < 1:
            raise ConfigurationError("number_groups must be positive")
        if self.number_azimuth < 1 or self.number_polar < 1:
            raise ConfigurationError("Quadrature needs at least one azimuth and one polar angle per octant")
        if min(self.inner_max_iters, self.outer_max_iters, self.gmres_restart,
               self.gmres_max_restarts) < 1:
            raise ConfigurationError("Iteration limits must be positive")
        if self.max_seconds is not None and self.max_seconds < 0.0:
            raise ConfigurationError("max_seconds must be non-negative")
        if self.keff <= 0.0:
            raise ConfigurationError(f"keff must be positive, got {self.keff}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SolverConfig":
        return _from_dict(cls, d)


@dataclass
class ResponseConfig:
    max_order_space: int = 0
    max_order_azimuth: int = 0
    max_order_polar: int = 0
    # Multiplication constant held fixed during every response solve
    keff: float = 1.0
    # Number of eigenvalues of M*RR to report
    number_eigenvalues: int = 4
    n_workers: int = 1
    # "raise": abort on the first fatal mode, "skip": record it and continue
    on_failure: str = "raise"
    show_progress: bool = False

    def __post_init__(self):
        for name in ("max_order_space", "max_order_azimuth", "max_order_polar"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative")
        if self.on_failure not in ("raise", "skip"):
            raise ConfigurationError(f"on_failure must be 'raise' or 'skip', got {self.on_failure}")
        if self.n_workers < 1:
            raise ConfigurationError("n_workers must be at least 1")
        if self.keff <= 0.0:
            raise ConfigurationError(f"keff must be positive, got {self.keff}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ResponseConfig":
        return _from_dict(cls, d)
