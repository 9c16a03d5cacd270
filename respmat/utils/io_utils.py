"""JSON / CSV helpers for run files, summaries and per-mode diagnostics."""
from __future__ import annotations
import json
import csv
from pathlib import Path
from typing import Any, Dict, List

import numpy as np


def _jsonable(obj: Any):
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, complex) or isinstance(obj, np.complexfloating):
        return {"real": float(obj.real), "imag": float(obj.imag)}
    return str(obj)


def save_json(data: Any, path: str):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=_jsonable)


def load_json(path: str) -> Any:
    with open(path) as f:
        return json.load(f)


def save_csv(rows: List[Dict], path: str):
    """One row per dict; columns keep the key order of the first row, extra keys appended."""
    if not rows:
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    fieldnames = list(rows[0].keys())
    for row in rows[1:]:
        fieldnames.extend(k for k in row if k not in fieldnames)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({k: row.get(k, "") for k in fieldnames})
