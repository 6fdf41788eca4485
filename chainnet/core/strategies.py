"""Weight-update strategies for chainnet layers.

An update rule is a strategy object chosen when a network is built. Its
parameters are a rule-specific value type that the network passes around
opaquely; only the rule knows how to construct and read them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Protocol, Tuple, Type

import numpy as np

from .errors import UnknownUpdateRule
from .types import Array, RuleState


class UpdateRule(Protocol):
    """Protocol implemented by weight-update strategies."""

    name: str
    params_type: Type

    def make_params(self, *args, **kwargs) -> object:
        """Build this rule's parameter value from positional/keyword args."""

    def init(self, shape: Tuple[int, ...]) -> RuleState:
        """Initialise per-layer state for weights of ``shape``."""

    def apply(
        self,
        weights: Array,
        gradient: Array,
        params: object,
        state: RuleState,
    ) -> tuple[Array, RuleState]:
        """Return the updated weights and the (possibly updated) state."""


@dataclass(frozen=True)
class LearningRate:
    lr: float


@dataclass(frozen=True)
class MomentumParams:
    lr: float
    beta: float = 0.9


@dataclass(frozen=True)
class ClipParams:
    lr: float
    clip: float = 1.0


class _ParamsMixin:
    params_type: Type

    def make_params(self, *args, **kwargs):
        if len(args) == 1 and not kwargs and isinstance(args[0], self.params_type):
            return args[0]
        if len(args) == 1 and not kwargs and isinstance(args[0], tuple):
            args = args[0]
        return self.params_type(*args, **kwargs)

    def init(self, shape: Tuple[int, ...]) -> RuleState:
        return RuleState()


@dataclass(frozen=True)
class GradientDescent(_ParamsMixin):
    """Plain gradient descent: ``W <- W - lr * G``."""

    name: str = "sgd"
    params_type: Type = LearningRate

    def apply(
        self,
        weights: Array,
        gradient: Array,
        params: LearningRate,
        state: RuleState,
    ) -> tuple[Array, RuleState]:
        state.steps += 1
        return weights - params.lr * gradient, state


@dataclass(frozen=True)
class Momentum(_ParamsMixin):
    """Heavy-ball momentum with a per-layer velocity buffer."""

    name: str = "momentum"
    params_type: Type = MomentumParams

    def init(self, shape: Tuple[int, ...]) -> RuleState:
        return RuleState(buffers={"velocity": np.zeros(shape, dtype=np.float64)})

    def apply(
        self,
        weights: Array,
        gradient: Array,
        params: MomentumParams,
        state: RuleState,
    ) -> tuple[Array, RuleState]:
        velocity = state.buffers.get("velocity")
        if velocity is None or velocity.shape != gradient.shape:
            velocity = np.zeros_like(gradient, dtype=np.float64)
        velocity = params.beta * velocity + gradient
        state.buffers["velocity"] = velocity
        state.steps += 1
        return weights - params.lr * velocity, state


@dataclass(frozen=True)
class ClippedGradientDescent(_ParamsMixin):
    """Gradient descent with the gradient clipped elementwise to ``[-clip, clip]``."""

    name: str = "clipped_sgd"
    params_type: Type = ClipParams

    def apply(
        self,
        weights: Array,
        gradient: Array,
        params: ClipParams,
        state: RuleState,
    ) -> tuple[Array, RuleState]:
        clipped = np.clip(gradient, -params.clip, params.clip)
        state.steps += 1
        return weights - params.lr * clipped, state


_RULES: Dict[str, Callable[[], UpdateRule]] = {
    "sgd": GradientDescent,
    "momentum": Momentum,
    "clipped_sgd": ClippedGradientDescent,
}


def rule_names() -> Iterable[str]:
    return sorted(_RULES)


def get_rule(name: str) -> UpdateRule:
    try:
        factory = _RULES[name]
    except KeyError:
        available = ", ".join(rule_names())
        raise UnknownUpdateRule(
            f"Unknown update rule {name!r}. Available rules: {available}"
        ) from None
    return factory()


__all__ = [
    "UpdateRule",
    "LearningRate",
    "MomentumParams",
    "ClipParams",
    "GradientDescent",
    "Momentum",
    "ClippedGradientDescent",
    "get_rule",
    "rule_names",
]
