"""
Response-matrix generation entry point.

Builds a lattice of homogenised C5G7 pins, computes the response matrix of
that cell by one Krylov (or source-iteration) solve per incident mode,
assembles the global operator for a lattice of copies and reports its
dominant eigenvalues.

Usage:
  python generate_responses.py
  python generate_responses.py --pin_map "0 0 0; 0 1 0; 0 0 0" --cells_per_pin 2 \
      --max_order_space 1 --max_order_azimuth 1 --keff 1.33
  python generate_responses.py --config runs/configs/assembly.json --n_workers 4
  python generate_responses.py --lattice 2 2 --outer_bc vacuum --precondition

A JSON run file may carry "solver", "response" and "problem" sections; CLI
flags override it.
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent))

from respmat.utils.logging_utils import setup_logging, log_run_banner
from respmat.utils.config import SolverConfig, ResponseConfig, SIDES
from respmat.utils.io_utils import save_json, load_json, save_csv
from respmat.data.materials import c5g7_materials, C5G7_ORDER
from respmat.data.io import save_result
from respmat.eval.metrics import evaluate_result
from respmat.response import generate_responses
from respmat.transport.mesh import Mesh2D

logger = logging.getLogger(__name__)

# UO2 pins around a 4.3% MOX pin
DEFAULT_PIN_MAP = [[0, 0, 0],
                   [0, 1, 0],
                   [0, 0, 0]]
# Responses default to keff = kinf of this fuel
DEFAULT_FUEL = "uo2"


def parse_pin_map(text: str):
    """'0 0 0; 0 1 0; 0 0 0' -> nested list (first row = top)."""
    rows = [r.split() for r in text.replace(",", " ").split(";") if r.strip()]
    if len({len(r) for r in rows}) != 1:
        raise argparse.ArgumentTypeError(f"Ragged pin map: {text}")
    return [[int(v) for v in r] for r in rows]


def build_arg_parser():
    p = argparse.ArgumentParser(description="Generate cell response matrices")
    p.add_argument("--config", default=None, help="JSON run file")
    p.add_argument("--pin_map", type=parse_pin_map, default=None,
                   help=f"Material indices per pin, rows separated by ';'. "
                        f"Materials: {', '.join(f'{i}={n}' for i, n in enumerate(C5G7_ORDER))}")
    p.add_argument("--pitch", type=float, default=None)
    p.add_argument("--cells_per_pin", type=int, default=None)
    p.add_argument("--number_azimuth", type=int, default=None)
    p.add_argument("--number_polar", type=int, default=None)
    p.add_argument("--max_order_space", type=int, default=None)
    p.add_argument("--max_order_azimuth", type=int, default=None)
    p.add_argument("--max_order_polar", type=int, default=None)
    p.add_argument("--keff", type=float, default=None)
    p.add_argument("--inner_solver", default=None, choices=["krylov", "si"])
    p.add_argument("--inner_tolerance", type=float, default=None)
    p.add_argument("--precondition", action="store_true", default=None)
    p.add_argument("--max_seconds", type=float, default=None,
                   help="Wall-clock budget per incident mode")
    p.add_argument("--n_workers", type=int, default=None)
    p.add_argument("--on_failure", default=None, choices=["raise", "skip"])
    p.add_argument("--number_eigenvalues", type=int, default=None)
    p.add_argument("--lattice", type=int, nargs=2, default=None, metavar=("NX", "NY"))
    p.add_argument("--outer_bc", default=None, choices=["reflect", "vacuum"])
    p.add_argument("--reference_keff", type=float, default=None)
    p.add_argument("--output_dir", default="runs/responses")
    p.add_argument("--name", default="cell")
    p.add_argument("--backend", default="", choices=["", "h5py", "zarr"])
    p.add_argument("--show_progress", action="store_true")
    p.add_argument("--log_level", default="INFO")
    p.add_argument("--log_file", default=None)
    return p


def resolve_configs(args, materials):
    run = load_json(args.config) if args.config else {}
    solver = dict(run.get("solver", {}))
    response = dict(run.get("response", {}))
    problem = dict(run.get("problem", {}))

    def override(section, key, value):
        if value is not None:
            section[key] = value

    for key in ("number_azimuth", "number_polar", "inner_solver", "inner_tolerance",
                "precondition", "max_seconds"):
        override(solver, key, getattr(args, key))
    for key in ("max_order_space", "max_order_azimuth", "max_order_polar",
                "n_workers", "on_failure", "number_eigenvalues"):
        override(response, key, getattr(args, key))
    override(problem, "pin_map", args.pin_map)
    override(problem, "pitch", args.pitch)
    override(problem, "cells_per_pin", args.cells_per_pin)
    override(problem, "lattice", args.lattice)
    override(problem, "outer_bc", args.outer_bc)

    keff = args.keff if args.keff is not None else response.get("keff", solver.get("keff"))
    if keff is None:
        keff = materials.kinf(materials.names.index(DEFAULT_FUEL))
    solver["keff"] = keff
    response["keff"] = keff
    if args.show_progress:
        response["show_progress"] = True
    solver["number_groups"] = materials.number_groups

    problem.setdefault("pin_map", DEFAULT_PIN_MAP)
    problem.setdefault("pitch", 1.26)
    problem.setdefault("cells_per_pin", 2)
    problem.setdefault("lattice", [1, 1])
    problem.setdefault("outer_bc", "reflect")
    return SolverConfig.from_dict(solver), ResponseConfig.from_dict(response), problem


def main():
    args = build_arg_parser().parse_args()
    setup_logging(args.log_level, args.log_file)

    materials = c5g7_materials()
    solver_cfg, response_cfg, problem = resolve_configs(args, materials)
    mesh = Mesh2D.from_pin_map(problem["pin_map"], problem["pitch"], problem["cells_per_pin"])
    number_x, number_y = problem["lattice"]
    outer_bc = {side: problem["outer_bc"] for side in SIDES}

    log_run_banner(mesh, materials, solver_cfg, response_cfg, number_elements=number_x * number_y)

    result = generate_responses(
        mesh, materials, solver_cfg, response_cfg,
        lattice=(number_x, number_y), outer_bc=outer_bc,
        metadata={"pin_map": problem["pin_map"], "pitch": problem["pitch"]},
    )

    out_dir = Path(args.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = save_result(result, out_dir / args.name, backend=args.backend)

    metrics = evaluate_result(result, reference_keff=args.reference_keff)
    save_json({"summary": result.summary(), "metrics": metrics.to_dict(),
               "eigenvalues": result.eigenvalues}, str(out_dir / f"{args.name}_summary.json"))
    save_csv([
        {"mode": k, "status": s, "flux_error": float(e), "total_inners": int(n)}
        for k, (s, e, n) in enumerate(zip(result.mode_status, result.mode_flux_error,
                                          result.mode_total_inners))
    ], str(out_dir / f"{args.name}_modes.csv"))

    logger.info(f"Saved: {path}")
    for i, lam in enumerate(result.eigenvalues):
        logger.info(f"  lambda[{i}] = {lam.real:+.10f} {lam.imag:+.3e}j")
    if not np.isnan(metrics.eigenvalue_error_pcm):
        logger.info(f"  error vs reference: {metrics.eigenvalue_error_pcm:+.1f} pcm")


if __name__ == "__main__":
    main()
