"""Deterministic training-loss summaries."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np


def _area(y: np.ndarray, x: np.ndarray) -> float:
    trapezoid = getattr(np, "trapezoid", None)
    if callable(trapezoid):
        return float(trapezoid(y, x))
    return float(np.trapz(y, x))


def compute_auc(points: Sequence[float]) -> float:
    """Return the area-under-curve of ``points`` along an implicit step axis."""

    if not points:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    x = np.arange(len(points), dtype=np.float64)
    return _area(y, x)


def summarise_history(history: Sequence[float], *, tail: int = 32) -> Mapping[str, object]:
    if not history:
        return {"version": 1, "iterations": 0, "tail_window": 0, "loss": {}}
    arr = np.asarray(history, dtype=np.float64)
    tail_window = min(tail, len(arr))
    return {
        "version": 1,
        "iterations": int(len(arr)),
        "tail_window": tail_window,
        "loss": {
            "first": float(arr[0]),
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
            "tail_auc": compute_auc(arr[-tail_window:].tolist()),
        },
    }


def write_summary(
    history: Sequence[float], out_summary_json: str | Path, *, tail: int = 32
) -> str:
    """Write a deterministic summary of ``history`` and return its path."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = summarise_history(history, tail=tail)
    out_path.write_text(json.dumps(summary, indent=2, sort_keys=True) + "\n")
    return str(out_path)


__all__ = ["compute_auc", "summarise_history", "write_summary"]
