"""
Response result inspection script.

Prints schema version, configuration, per-block stats, per-mode solver
diagnostics and the dominant eigenvalues of a saved run.

Usage:
  python scripts/inspect_responses.py runs/responses/cell.h5
  python scripts/inspect_responses.py runs/responses/cell --n_show 10
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from respmat.utils.logging_utils import setup_logging
from respmat.data.io import load_result
from respmat.data.schema import SCHEMA_VERSION, SIDE_KEYS
from respmat.eval.metrics import evaluate_result

logger = logging.getLogger(__name__)


def print_array_stats(name: str, arr):
    a = np.asarray(arr)
    print(f"  {name:20s}: shape={str(a.shape):20s}  "
          f"min={a.min():.4e}  max={a.max():.4e}  mean={a.mean():.4e}")


def main():
    setup_logging("INFO")
    p = argparse.ArgumentParser(description="Inspect a saved response result")
    p.add_argument("result_path", help="Path to HDF5 file or Zarr directory")
    p.add_argument("--n_show", type=int, default=5, help="Number of modes to list")
    p.add_argument("--reference_keff", type=float, default=None)
    args = p.parse_args()

    try:
        result = load_result(args.result_path)
    except FileNotFoundError as exc:
        logger.error(str(exc))
        sys.exit(1)

    print("\n" + "=" * 60)
    print(f"Result: {args.result_path}   (code schema {SCHEMA_VERSION})")
    print(f"Modes per side: {result.number_modes}   R: {result.R.shape}")
    print(f"Metadata: {result.metadata}")
    print(f"Response config: {result.config.get('response', {})}")
    print("=" * 60)

    print("Blocks (left incidence):")
    for side in SIDE_KEYS:
        print_array_stats(f"coef[{side}]", result.block(side))
    print_array_stats("R", result.R)

    print("\nModes:")
    for k in range(min(args.n_show, result.number_modes)):
        print(f"  {k:5d}  {result.mode_status[k]:32s}  flux_error={result.mode_flux_error[k]:.3e}  "
              f"inners={result.mode_total_inners[k]}")
    if result.failed_modes:
        print(f"  failed: {result.failed_modes}")

    print("\nEigenvalues of M*R:")
    for i, lam in enumerate(result.eigenvalues):
        print(f"  {i}: {lam.real:+.10f} {lam.imag:+.3e}j")

    metrics = evaluate_result(result, reference_keff=args.reference_keff)
    print("\nMetrics:")
    for key, value in metrics.to_dict().items():
        print(f"  {key:22s}: {value}")


if __name__ == "__main__":
    main()
