"""
Canonical result schema for response-matrix runs.

A ResponseResult bundles everything a run produces: the four left-incidence
coefficient blocks, the assembled response matrix, the dominant eigenvalues
of the global operator, per-mode solver diagnostics and the configuration
that produced them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

import numpy as np

SCHEMA_VERSION = "1.0.0"

SIDE_KEYS = ("left", "right", "bottom", "top")


@dataclass
class ResponseResult:
    """
    coef:              [4, max_o, max_o], left incidence -> (left, right, bottom, top)
    R:                 [4 max_o, 4 max_o] response matrix
    eigenvalues:       complex, sorted by decreasing real part
    mode_flux_error:   [max_o] relative GMRES residual per incident mode (nan if failed)
    mode_total_inners: [max_o] total inner iterations per mode (-1 if failed)
    mode_status:       solver status per mode ("failed" if the mode raised)
    """
    coef: np.ndarray
    R: np.ndarray
    eigenvalues: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.complex128))
    mode_flux_error: np.ndarray = field(default_factory=lambda: np.zeros(0))
    mode_total_inners: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    mode_status: List[str] = field(default_factory=list)
    failed_modes: List[int] = field(default_factory=list)
    config: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def number_modes(self) -> int:
        return self.coef.shape[1]

    def block(self, side: str) -> np.ndarray:
        return self.coef[SIDE_KEYS.index(side)]

    @property
    def dominant_eigenvalue(self) -> Optional[float]:
        if len(self.eigenvalues) == 0:
            return None
        return float(self.eigenvalues[0].real)

    @classmethod
    def from_expansion(cls, expansion, R, eigenvalues, config: Optional[Dict[str, Any]] = None,
                       metadata: Optional[Dict[str, Any]] = None) -> "ResponseResult":
        outputs = expansion.outputs
        return cls(
            coef=np.asarray(expansion.coef),
            R=np.asarray(R),
            eigenvalues=np.asarray(eigenvalues, dtype=np.complex128),
            mode_flux_error=np.array([o.flux_error if o is not None else np.nan for o in outputs]),
            mode_total_inners=np.array([o.total_inners if o is not None else -1 for o in outputs],
                                       dtype=np.int64),
            mode_status=[o.status.value if o is not None else "failed" for o in outputs],
            failed_modes=list(expansion.failed_modes),
            config=dict(config or {}),
            metadata=dict(metadata or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coef": self.coef.tolist(),
            "R": self.R.tolist(),
            "eigenvalues_real": self.eigenvalues.real.tolist(),
            "eigenvalues_imag": self.eigenvalues.imag.tolist(),
            "mode_flux_error": self.mode_flux_error.tolist(),
            "mode_total_inners": self.mode_total_inners.tolist(),
            "mode_status": list(self.mode_status),
            "failed_modes": list(self.failed_modes),
            "config": self.config,
            "metadata": self.metadata,
            "schema_version": SCHEMA_VERSION,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ResponseResult":
        eigenvalues = (np.asarray(d.get("eigenvalues_real", []), dtype=np.float64)
                       + 1j * np.asarray(d.get("eigenvalues_imag", []), dtype=np.float64))
        return cls(
            coef=np.asarray(d["coef"], dtype=np.float64),
            R=np.asarray(d["R"], dtype=np.float64),
            eigenvalues=eigenvalues,
            mode_flux_error=np.asarray(d.get("mode_flux_error", []), dtype=np.float64),
            mode_total_inners=np.asarray(d.get("mode_total_inners", []), dtype=np.int64),
            mode_status=list(d.get("mode_status", [])),
            failed_modes=[int(k) for k in d.get("failed_modes", [])],
            config=d.get("config", {}),
            metadata=d.get("metadata", {}),
        )

    def summary(self) -> Dict[str, Any]:
        converged = sum(1 for s in self.mode_status if s == "converged")
        return {
            "modes": self.number_modes,
            "converged_modes": converged,
            "failed_modes": len(self.failed_modes),
            "max_flux_error": float(np.nanmax(self.mode_flux_error)) if len(self.mode_flux_error) else None,
            "total_inners": int(self.mode_total_inners[self.mode_total_inners > 0].sum()),
            "dominant_eigenvalue": self.dominant_eigenvalue,
        }
