"""chainnet public API."""

from .core import activations  # noqa: F401
from .core import strategies  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import (
    CardinalityMismatch,
    ChainNetError,
    ConvergenceWarning,
    ErrorKind,
    OrderingViolation,
    ShapeMismatch,
    UnknownLossName,
)
from .core.layer import Layer
from .core.types import Shape, TrainingState, TrainResult
from .training.losses import REGISTRY as LOSSES
from .training.losses import Loss
from .training.network import Network
from .training.pipelines import build_network, load_preset, presets, run_pipeline

__all__ = [
    "Network",
    "Layer",
    "Loss",
    "LOSSES",
    "Shape",
    "TrainingState",
    "TrainResult",
    "ErrorKind",
    "ChainNetError",
    "ShapeMismatch",
    "CardinalityMismatch",
    "UnknownLossName",
    "OrderingViolation",
    "ConvergenceWarning",
    "activations",
    "strategies",
    "types",
    "build_network",
    "load_preset",
    "presets",
    "run_pipeline",
]
