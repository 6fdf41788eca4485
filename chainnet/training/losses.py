"""Loss registry used by :class:`chainnet.training.network.Network`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.errors import UnknownLossName
from ..core.types import Array

ScalarLossFn = Callable[[Array, Array], float]
GradientFn = Callable[[Array, Array], Array]


@dataclass(frozen=True)
class Loss:
    """A scalar loss paired with its gradient with respect to the output."""

    name: str
    scalar: ScalarLossFn
    gradient: GradientFn

    def __call__(self, predictions: Array, targets: Array) -> tuple[float, Array]:
        return float(self.scalar(predictions, targets)), self.gradient(predictions, targets)

    @classmethod
    def from_functions(
        cls, scalar: ScalarLossFn, gradient: GradientFn, name: str = "custom"
    ) -> "Loss":
        if not callable(scalar) or not callable(gradient):
            raise TypeError("a loss needs a callable scalar function and gradient")
        return cls(name, scalar, gradient)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}
        self._frozen = False

    def register(self, name: str, scalar: ScalarLossFn, gradient: GradientFn) -> None:
        if self._frozen:
            raise RuntimeError(f"loss registry is read-only; cannot register {name!r}")
        self._registry[name] = Loss(name, scalar, gradient)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def get(self, name: str) -> Loss:
        if name not in self._registry:
            available = ", ".join(self.names())
            raise UnknownLossName(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]


REGISTRY = LossRegistry()


def _l2(pred: Array, target: Array) -> float:
    resid = pred - target
    return 0.5 * float(np.sum(resid * resid))


def _l2_grad(pred: Array, target: Array) -> Array:
    return pred - target


def _mse(pred: Array, target: Array) -> float:
    return float(np.mean(np.square(pred - target)))


def _mse_grad(pred: Array, target: Array) -> Array:
    diff = pred - target
    return 2.0 * diff / diff.size


def _mae(pred: Array, target: Array) -> float:
    return float(np.mean(np.abs(pred - target)))


def _mae_grad(pred: Array, target: Array) -> Array:
    diff = pred - target
    return np.sign(diff) / diff.size


def _huber(pred: Array, target: Array, delta: float = 1.0) -> float:
    abs_diff = np.abs(pred - target)
    quadratic = np.minimum(abs_diff, delta)
    linear = abs_diff - quadratic
    return float(np.mean(0.5 * quadratic**2 + delta * linear))


def _huber_grad(pred: Array, target: Array, delta: float = 1.0) -> Array:
    diff = pred - target
    grad = np.where(np.abs(diff) <= delta, diff, delta * np.sign(diff))
    return grad / diff.size


def _sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def _bce_with_logits(logits: Array, target: Array) -> float:
    probs = _sigmoid(logits)
    eps = 1e-9
    return float(-np.mean(target * np.log(probs + eps) + (1 - target) * np.log(1 - probs + eps)))


def _bce_with_logits_grad(logits: Array, target: Array) -> Array:
    diff = _sigmoid(logits) - target
    return diff / diff.size


REGISTRY.register("L2", _l2, _l2_grad)
REGISTRY.register("mse", _mse, _mse_grad)
REGISTRY.register("mae", _mae, _mae_grad)
REGISTRY.register("huber", _huber, _huber_grad)
REGISTRY.register("bce", _bce_with_logits, _bce_with_logits_grad)
# Alias for parity with research code naming
REGISTRY.register("bcewithlogits", _bce_with_logits, _bce_with_logits_grad)
REGISTRY.freeze()


def resolve(loss) -> Loss:
    """Turn a loss name, :class:`Loss` or ``(scalar, gradient)`` pair into a :class:`Loss`."""

    if isinstance(loss, Loss):
        return loss
    if isinstance(loss, str):
        return REGISTRY.get(loss)
    if isinstance(loss, tuple) and len(loss) == 2:
        return Loss.from_functions(*loss)
    raise TypeError(
        "loss must be a registered name, a Loss, or a (scalar, gradient) pair; "
        f"got {type(loss).__name__}"
    )


__all__ = ["Loss", "LossRegistry", "REGISTRY", "resolve"]
