"""
HDF5 and Zarr persistence of ResponseResult with schema versioning.

Layout (both backends):
  coef/left, coef/right, coef/bottom, coef/top   [max_o, max_o]
  R                                             [4 max_o, 4 max_o]
  eigenvalues_real, eigenvalues_imag            [k]
  mode_flux_error, mode_total_inners            [max_o]
  mode_status                                   [max_o] integer codes (see STATUS_CODES)
  attrs: schema_version, config (JSON), _meta (JSON, includes failed_modes)

Backend selection:
  - Windows  -> h5py  (zarr v3 has atomic-rename + read-only ZipStore bugs on Windows)
  - Linux/macOS -> zarr v3 LocalStore or zarr v2 DirectoryStore

You can force a backend: RESPMAT_IO_BACKEND=h5py or RESPMAT_IO_BACKEND=zarr
"""

from __future__ import annotations
import json
import logging
import os
import platform
import warnings
from pathlib import Path
from typing import Dict, Any, Union

import numpy as np

from .schema import ResponseResult, SCHEMA_VERSION, SIDE_KEYS

logger = logging.getLogger(__name__)

# ── dependency checks ──────────────────────────────────────────────────────────
try:
    import zarr
    ZARR_AVAILABLE = True
    _ZARR_V3 = int(zarr.__version__.split(".")[0]) >= 3
except ImportError:
    ZARR_AVAILABLE = False
    _ZARR_V3 = False

try:
    import h5py
    H5PY_AVAILABLE = True
except ImportError:
    H5PY_AVAILABLE = False

_ON_WINDOWS = platform.system() == "Windows"

STATUS_CODES = ("converged", "max_iterations", "ill_conditioned_preconditioner",
                "stagnated", "unknown", "failed")


def default_backend() -> str:
    env = os.environ.get("RESPMAT_IO_BACKEND", "").lower()
    if env in ("h5py", "zarr"):
        return env
    if _ON_WINDOWS:
        return "h5py" if H5PY_AVAILABLE else "zarr"
    return "zarr" if ZARR_AVAILABLE else "h5py"


def _h5_path(path: str) -> str:
    """Ensure h5py path ends with .h5"""
    p = str(path)
    if not (p.endswith(".h5") or p.endswith(".hdf5")):
        return p + ".h5"
    return p


def _open_zarr_group(path: str, mode: str):
    if _ZARR_V3:
        import zarr.storage
        store = zarr.storage.LocalStore(path, read_only=(mode == "r"))
        return zarr.open_group(store=store, mode=mode)
    store = zarr.DirectoryStore(path)
    return zarr.open_group(store, mode=mode)


def _encode_status(statuses) -> np.ndarray:
    return np.array([STATUS_CODES.index(s) for s in statuses], dtype=np.int64)


def _decode_status(codes) -> list:
    return [STATUS_CODES[int(c)] for c in codes]


def _arrays(result: ResponseResult) -> Dict[str, np.ndarray]:
    arrays = {f"coef/{side}": result.coef[i] for i, side in enumerate(SIDE_KEYS)}
    arrays.update({
        "R": result.R,
        "eigenvalues_real": np.asarray(result.eigenvalues.real, dtype=np.float64),
        "eigenvalues_imag": np.asarray(result.eigenvalues.imag, dtype=np.float64),
        "mode_flux_error": np.asarray(result.mode_flux_error, dtype=np.float64),
        "mode_total_inners": np.asarray(result.mode_total_inners, dtype=np.int64),
        "mode_status": _encode_status(result.mode_status),
    })
    return arrays


def _meta(result: ResponseResult) -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "number_modes": result.number_modes,
        "failed_modes": list(result.failed_modes),
        **result.metadata,
    }


def _assemble(get, meta: Dict[str, Any], config: Dict[str, Any]) -> ResponseResult:
    failed = [int(k) for k in meta.pop("failed_modes", [])]
    meta.pop("number_modes", None)
    meta.pop("schema_version", None)
    return ResponseResult(
        coef=np.stack([get(f"coef/{side}") for side in SIDE_KEYS]),
        R=get("R"),
        eigenvalues=get("eigenvalues_real") + 1j * get("eigenvalues_imag"),
        mode_flux_error=get("mode_flux_error"),
        mode_total_inners=get("mode_total_inners").astype(np.int64),
        mode_status=_decode_status(get("mode_status")),
        failed_modes=failed,
        config=config,
        metadata=meta,
    )


def _check_version(found: str, path: str):
    if found != SCHEMA_VERSION:
        warnings.warn(f"Schema version mismatch in {path}: file={found}, code={SCHEMA_VERSION}")


# ── Public writer / reader (auto-selects backend) ─────────────────────────────

def save_result(result: ResponseResult, path: Union[str, Path], backend: str = "") -> str:
    """Write a ResponseResult; returns the path actually written."""
    backend = backend or default_backend()
    if backend == "h5py":
        return _save_h5(result, _h5_path(str(path)))
    if backend == "zarr":
        return _save_zarr(result, str(path))
    raise ValueError(f"Unknown backend: {backend}. Choose from: h5py, zarr")


def load_result(path: Union[str, Path]) -> ResponseResult:
    """Read a ResponseResult; the backend follows from what exists on disk."""
    p = str(path)
    for candidate in [p, p + ".h5"]:
        if Path(candidate).is_file() and (candidate.endswith(".h5") or candidate.endswith(".hdf5")):
            return _load_h5(candidate)
    if Path(p).is_dir():
        return _load_zarr(p)
    raise FileNotFoundError(
        f"Response result not found: {p}\n"
        f"  Tried: {p}, {p + '.h5'}\n"
        f"  Make sure you ran generate_responses.py first."
    )


# ── h5py backend ──────────────────────────────────────────────────────────────

def _save_h5(result: ResponseResult, path: str) -> str:
    if not H5PY_AVAILABLE:
        raise ImportError("h5py is required. pip install h5py")
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(path, "w") as f:
        for name, arr in _arrays(result).items():
            f.create_dataset(name, data=arr)
        f.attrs["schema_version"] = SCHEMA_VERSION
        f.attrs["config"] = json.dumps(result.config)
        f.attrs["_meta"] = json.dumps(_meta(result))
    logger.info(f"Saved response result to {path}")
    return path


def _load_h5(path: str) -> ResponseResult:
    if not H5PY_AVAILABLE:
        raise ImportError("h5py is required. pip install h5py")
    with h5py.File(path, "r") as f:
        _check_version(str(f.attrs.get("schema_version", "unknown")), path)
        meta = json.loads(f.attrs.get("_meta", "{}"))
        config = json.loads(f.attrs.get("config", "{}"))
        return _assemble(lambda name: np.array(f[name]), meta, config)


# ── zarr backend (Linux / macOS) ──────────────────────────────────────────────

def _save_zarr(result: ResponseResult, path: str) -> str:
    if not ZARR_AVAILABLE:
        raise ImportError("zarr is required. pip install zarr")
    root = _open_zarr_group(path, mode="w")
    coef = root.require_group("coef")
    for name, arr in _arrays(result).items():
        group, key = (coef, name.split("/", 1)[1]) if name.startswith("coef/") else (root, name)
        if _ZARR_V3:
            group.create_array(name=key, data=arr, overwrite=True)
        else:
            group.array(key, arr, overwrite=True)
    root.attrs["schema_version"] = SCHEMA_VERSION
    root.attrs["config"] = json.dumps(result.config)
    root.attrs["_meta"] = json.dumps(_meta(result))
    logger.info(f"Saved response result to {path}")
    return path


def _load_zarr(path: str) -> ResponseResult:
    if not ZARR_AVAILABLE:
        raise ImportError("zarr is required. pip install zarr")
    root = _open_zarr_group(path, mode="r")
    _check_version(str(root.attrs.get("schema_version", "unknown")), path)
    meta = json.loads(root.attrs.get("_meta", "{}"))
    config = json.loads(root.attrs.get("config", "{}"))
    return _assemble(lambda name: np.array(root[name]), meta, config)
