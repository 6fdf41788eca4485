"""Activation functions and their derivatives, looked up by name."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .errors import UnknownActivationName
from .types import Array


def identity(x: Array) -> Array:
    return x


def identity_deriv(x: Array) -> Array:
    return np.ones_like(x)


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def relu_deriv(x: Array) -> Array:
    return (x > 0).astype(x.dtype)


def leaky_relu(x: Array, alpha: float = 0.01) -> Array:
    return np.where(x > 0, x, alpha * x)


def leaky_relu_deriv(x: Array, alpha: float = 0.01) -> Array:
    return np.where(x > 0, 1.0, alpha)


def sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def sigmoid_deriv(x: Array) -> Array:
    s = sigmoid(x)
    return s * (1.0 - s)


def tanh(x: Array) -> Array:
    return np.tanh(x)


def tanh_deriv(x: Array) -> Array:
    return 1.0 - np.tanh(x) ** 2


def softplus(x: Array) -> Array:
    # log(1 + e^x) without overflow for large x
    return np.logaddexp(0.0, x)


def softplus_deriv(x: Array) -> Array:
    return sigmoid(x)


@dataclass(frozen=True)
class Activation:
    """A named nonlinearity together with its derivative."""

    name: str
    fn: Callable[[Array], Array]
    deriv: Callable[[Array], Array]

    def __call__(self, x: Array) -> Array:
        return self.fn(x)


_ACTIVATIONS: Dict[str, Activation] = {
    act.name: act
    for act in (
        Activation("identity", identity, identity_deriv),
        Activation("relu", relu, relu_deriv),
        Activation("leaky_relu", leaky_relu, leaky_relu_deriv),
        Activation("sigmoid", sigmoid, sigmoid_deriv),
        Activation("tanh", tanh, tanh_deriv),
        Activation("softplus", softplus, softplus_deriv),
    )
}


def names() -> Iterable[str]:
    return sorted(_ACTIVATIONS)


def get(name: str) -> Activation:
    try:
        return _ACTIVATIONS[name]
    except KeyError:
        available = ", ".join(names())
        raise UnknownActivationName(
            f"Unknown activation {name!r}. Available activations: {available}"
        ) from None


__all__ = ["Activation", "get", "names", "identity", "relu", "sigmoid", "tanh"]
