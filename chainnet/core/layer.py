"""Dense layer implementing the contract the network orchestrates.

A layer maps an input matrix of shape ``(features, samples)`` to an output of
shape ``(num_outputs, samples)`` through ``act(W @ X)``. Gradients and error
terms are only defined after :meth:`Layer.backward_pass` and go stale as soon
as the weights change.
"""

from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np

from . import activations
from .errors import OrderingViolation, ShapeMismatch
from .strategies import GradientDescent, UpdateRule
from .types import Array, Shape


def _as_shape(shape: Union[Shape, Sequence[int]]) -> Shape:
    rows, cols = shape
    if rows < 1 or cols < 1:
        raise ShapeMismatch(f"shape dimensions must be positive, got ({rows}, {cols})")
    return Shape(int(rows), int(cols))


class Layer:
    """A single weighted, activated transformation stage."""

    def __init__(
        self,
        input_shape: Union[Shape, Tuple[int, int]],
        num_outputs: int,
        activation: str = "identity",
        update_rule: UpdateRule | None = None,
        *,
        weights: Array | None = None,
        seed: int = 0,
    ) -> None:
        if num_outputs < 1:
            raise ShapeMismatch(f"num_outputs must be positive, got {num_outputs}")
        self._input_shape = _as_shape(input_shape)
        self._num_outputs = int(num_outputs)
        self._activation = activations.get(activation)
        self._rule: UpdateRule = update_rule or GradientDescent()
        self._params: object | None = None
        self._seed = seed
        self._inputs: Array | None = None
        self._pre_activation: Array | None = None
        self._outputs: Array | None = None
        self._err: Array | None = None
        self._gradient: Array | None = None
        if weights is None:
            self._reset_weights()
        else:
            self.set_weights(weights)

    # ------------------------------------------------------------------
    # Shape bookkeeping

    @property
    def input_shape(self) -> Shape:
        return self._input_shape

    @property
    def num_outputs(self) -> int:
        return self._num_outputs

    @property
    def output_shape(self) -> Shape:
        return Shape(self._num_outputs, self._input_shape.cols)

    def set_input_shape(self, shape: Union[Shape, Tuple[int, int]]) -> None:
        """Declare a new input shape, re-initialising weights if the row count changes."""

        shape = _as_shape(shape)
        rows_changed = shape.rows != self._input_shape.rows
        self._input_shape = shape
        if rows_changed:
            self._reset_weights()
        self._invalidate()

    def set_num_outputs(self, num_outputs: int) -> None:
        if num_outputs < 1:
            raise ShapeMismatch(f"num_outputs must be positive, got {num_outputs}")
        if num_outputs != self._num_outputs:
            self._num_outputs = int(num_outputs)
            self._reset_weights()
        self._invalidate()

    def _reset_weights(self) -> None:
        rng = np.random.default_rng(self._seed)
        rows = self._input_shape.rows
        self._weights = rng.standard_normal((self._num_outputs, rows)) / np.sqrt(rows)
        self._rule_state = self._rule.init(self._weights.shape)

    def _invalidate(self) -> None:
        # anything derived from the old weights or shape must be recomputed
        self._pre_activation = None
        self._outputs = None
        self._err = None
        self._gradient = None

    # ------------------------------------------------------------------
    # Weights, activation and update rule

    @property
    def weights(self) -> Array:
        return self._weights.copy()

    def set_weights(self, weights: Array) -> None:
        weights = np.asarray(weights, dtype=np.float64)
        expected = (self._num_outputs, self._input_shape.rows)
        if weights.shape != expected:
            raise ShapeMismatch(
                f"weight matrix must have shape {expected}, got {weights.shape}"
            )
        self._weights = weights.copy()
        self._rule_state = self._rule.init(self._weights.shape)
        self._invalidate()

    @property
    def activation(self) -> str:
        return self._activation.name

    def set_activation(self, name: str) -> None:
        self._activation = activations.get(name)
        self._invalidate()

    @property
    def update_rule(self) -> UpdateRule:
        return self._rule

    def set_update_rule(self, rule: UpdateRule) -> None:
        self._rule = rule
        self._params = None
        self._rule_state = rule.init(self._weights.shape)

    @property
    def update_params(self) -> object | None:
        return self._params

    def set_update_params(self, *args, **kwargs) -> None:
        """Store parameters for this layer's update rule, reused by every update."""

        self._params = self._rule.make_params(*args, **kwargs)

    # ------------------------------------------------------------------
    # Forward pass

    def set_inputs(self, inputs: Array) -> None:
        inputs = np.asarray(inputs, dtype=np.float64)
        if inputs.ndim != 2 or inputs.shape[0] != self._input_shape.rows:
            raise ShapeMismatch(
                f"layer expects inputs with {self._input_shape.rows} rows, "
                f"got shape {inputs.shape}"
            )
        if inputs.shape[1] != self._input_shape.cols:
            self._input_shape = Shape(self._input_shape.rows, int(inputs.shape[1]))
        self._inputs = inputs

    def forward_pass(self) -> None:
        if self._inputs is None:
            raise OrderingViolation("forward_pass called before set_inputs")
        self._pre_activation = self._weights @ self._inputs
        self._outputs = self._activation(self._pre_activation)
        self._err = None
        self._gradient = None

    @property
    def outputs(self) -> Array:
        if self._outputs is None:
            raise OrderingViolation("outputs are undefined before forward_pass")
        return self._outputs.copy()

    # ------------------------------------------------------------------
    # Backward pass

    def backward_pass(self, downstream: Union[Array, "Layer"]) -> None:
        """Compute this layer's error term and weight gradient.

        ``downstream`` is either the network's loss gradient (terminal layer) or
        the layer that follows this one, whose backward pass must already have
        run.
        """

        if self._pre_activation is None or self._inputs is None:
            raise OrderingViolation("backward_pass called before forward_pass")
        if isinstance(downstream, Layer):
            upstream = downstream.propagated_error()
        else:
            upstream = np.asarray(downstream, dtype=np.float64)
            if upstream.ndim == 1:
                upstream = upstream.reshape(-1, 1)
        if upstream.shape[0] != self._num_outputs:
            raise ShapeMismatch(
                f"incoming gradient has {upstream.shape[0]} rows, "
                f"layer produces {self._num_outputs} outputs"
            )
        self._err = upstream * self._activation.deriv(self._pre_activation)
        self._gradient = self._err @ self._inputs.T

    def propagated_error(self) -> Array:
        """Error term pushed back to the preceding layer: ``W.T @ err``."""

        return self._weights.T @ self.error

    @property
    def error(self) -> Array:
        if self._err is None:
            raise OrderingViolation("error is undefined until backward_pass has run")
        return self._err.copy()

    @property
    def gradient(self) -> Array:
        if self._gradient is None:
            raise OrderingViolation("gradient is undefined until backward_pass has run")
        return self._gradient.copy()

    # ------------------------------------------------------------------
    # Update

    def update_weights(self) -> None:
        if self._params is None:
            raise OrderingViolation(
                f"no parameters set for update rule {self._rule.name!r}"
            )
        self._weights, self._rule_state = self._rule.apply(
            self._weights, self.gradient, self._params, self._rule_state
        )
        self._invalidate()

    def __repr__(self) -> str:
        return (
            f"Layer(input_shape={tuple(self._input_shape)}, "
            f"num_outputs={self._num_outputs}, activation={self.activation!r})"
        )


__all__ = ["Layer"]
