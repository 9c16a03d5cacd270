"""
Diagnostics for response-matrix runs.

Metrics:
- relative L2 error between two arrays (e.g. coefficient blocks from two runs)
- eigenvalue error in pcm against a reference multiplication factor
- per-run summary: converged / failed modes, worst GMRES residual, inner
  iteration totals, dominant eigenvalue
"""

from __future__ import annotations
import math
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

import numpy as np


@dataclass
class ResponseMetrics:
    """Summary metrics for one ResponseResult."""
    number_modes: int = 0
    converged_modes: int = 0
    failed_modes: int = 0
    max_flux_error: float = float("nan")
    mean_total_inners: float = float("nan")
    dominant_eigenvalue: float = float("nan")
    eigenvalue_error_pcm: float = float("nan")   # N/A without a reference

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def relative_l2_error(pred, true, eps: float = 1e-14) -> float:
    """||pred - true||_F / (||true||_F + eps)"""
    pred = np.asarray(pred, dtype=np.float64)
    true = np.asarray(true, dtype=np.float64)
    return float(np.linalg.norm(pred - true) / (np.linalg.norm(true) + eps))


def eigenvalue_error_pcm(k: float, k_ref: float) -> float:
    return 1.0e5 * (k - k_ref) / k_ref


def evaluate_result(result, reference_keff: Optional[float] = None) -> ResponseMetrics:
    ok = np.isfinite(result.mode_flux_error)
    inners = result.mode_total_inners[result.mode_total_inners >= 0]
    m = ResponseMetrics(
        number_modes=result.number_modes,
        converged_modes=sum(1 for s in result.mode_status if s == "converged"),
        failed_modes=len(result.failed_modes),
        max_flux_error=float(result.mode_flux_error[ok].max()) if ok.any() else float("nan"),
        mean_total_inners=float(inners.mean()) if len(inners) else float("nan"),
    )
    if result.dominant_eigenvalue is not None:
        m.dominant_eigenvalue = result.dominant_eigenvalue
        if reference_keff is not None and not math.isnan(m.dominant_eigenvalue):
            m.eigenvalue_error_pcm = eigenvalue_error_pcm(m.dominant_eigenvalue, reference_keff)
    return m
