"""Core typing contracts for chainnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, NamedTuple

import numpy as np

Array = np.ndarray


class Shape(NamedTuple):
    """Input matrix dimensions a layer expects, as ``(rows, cols)``."""

    rows: int
    cols: int

    @classmethod
    def of(cls, matrix: Array) -> "Shape":
        if matrix.ndim != 2:
            raise ValueError(f"expected a 2-D matrix, got {matrix.ndim} dimension(s)")
        return cls(int(matrix.shape[0]), int(matrix.shape[1]))

    def __str__(self) -> str:
        return f"({self.rows} x {self.cols})"


@dataclass
class RuleState:
    """State persisted by an update rule between weight updates."""

    buffers: Dict[str, Array] = field(default_factory=dict)
    steps: int = 0


class TrainingState(Enum):
    INITIAL = "initial"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITER_REACHED = "max_iter_reached"


@dataclass(frozen=True)
class TrainResult:
    """Summary returned by :meth:`chainnet.training.network.Network.train`."""

    iterations: int
    final_loss: float
    state: TrainingState
    history_length: int

    @property
    def converged(self) -> bool:
        return self.state is TrainingState.CONVERGED


@dataclass(frozen=True)
class PipelineResult:
    """Summary returned by :func:`chainnet.training.pipelines.run_pipeline`."""

    iterations: int
    final_loss: float
    state: str
    metrics_path: str = ""
    summary_path: str = ""
