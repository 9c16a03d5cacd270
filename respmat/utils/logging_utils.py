"""Logging setup utilities."""
import logging
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_str: Optional[str] = None,
):
    """Configure root logger."""
    if format_str is None:
        format_str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_str,
        handlers=handlers,
    )


def log_run_banner(
    mesh,
    materials,
    solver_cfg,
    response_cfg=None,
    number_elements: int = 1,
):
    """
    Print a clearly formatted banner showing:
      - problem size (cells, groups, angles)
      - inner solver and preconditioner
      - response expansion orders and number of independent solves

    Call once at the start of generate_responses.py.
    """
    sep = "=" * 68
    n_angles = 4 * solver_cfg.number_azimuth * solver_cfg.number_polar
    lines = [
        sep,
        "  RUN SUMMARY",
        sep,
        f"  Mesh        : {mesh.number_cells_x} x {mesh.number_cells_y} cells"
        f"  ({mesh.width_x:.4g} x {mesh.width_y:.4g} cm)",
        f"  Groups      : {materials.number_groups}   Materials: {materials.number_materials}",
        f"  Angles      : {n_angles}  ({solver_cfg.number_azimuth} azimuth x "
        f"{solver_cfg.number_polar} polar per octant)",
        f"  Inner solver: {solver_cfg.inner_solver}"
        f"   tol={solver_cfg.inner_tolerance:.1e}"
        f"   preconditioner={'diffusion' if solver_cfg.precondition else 'none'}",
    ]
    if response_cfg is not None:
        n_modes = materials.number_groups * (response_cfg.max_order_space + 1) * \
            (response_cfg.max_order_azimuth + 1) * (response_cfg.max_order_polar + 1)
        lines += [
            f"  Orders      : space={response_cfg.max_order_space}"
            f"  azimuth={response_cfg.max_order_azimuth}"
            f"  polar={response_cfg.max_order_polar}",
            f"  Modes       : {n_modes} solves   keff={response_cfg.keff:.10g}"
            f"   elements={number_elements}",
        ]
    lines.append(sep)
    for line in lines:
        logger.info(line)
