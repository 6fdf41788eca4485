"""Feed-forward network orchestration.

The :class:`Network` owns an ordered sequence of :class:`~chainnet.core.layer.Layer`
objects and drives them through predict -> backward -> update cycles. Shape
metadata (``input_shape``, ``num_outputs``, ``layer_input_shapes``) is always
derived from the current layers, so it cannot drift from them.

Ordering rules:

* ``backward_pass`` needs a completed ``predict`` with a target set.
* Per-layer errors and gradients are defined only after ``backward_pass`` and
  become stale once weights change (``update_weights``/``set_weights``).
"""

from __future__ import annotations

import copy
import warnings
from collections.abc import Mapping, MutableSequence
from typing import Callable, Iterable, Iterator, List, Sequence, Tuple, Union

import numpy as np

from ..core import activations
from ..core.errors import (
    ConvergenceWarning,
    OrderingViolation,
    ShapeMismatch,
    check_cardinality,
)
from ..core.layer import Layer
from ..core.strategies import UpdateRule, get_rule
from ..core.types import Array, Shape, TrainingState, TrainResult
from .losses import Loss, resolve as resolve_loss

LossSpec = Union[str, Loss, Tuple[Callable, Callable]]


def _resolve_rule(rule: UpdateRule | str | None) -> UpdateRule | None:
    if isinstance(rule, str):
        return get_rule(rule)
    return rule


def _as_matrix(values: Array) -> Array:
    matrix = np.asarray(values, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise ShapeMismatch(f"expected a vector or matrix, got {matrix.ndim} dimensions")
    return matrix


class Network:
    """An ordered chain of layers trained against a single target."""

    def __init__(
        self,
        input_shape: Union[Shape, Tuple[int, int]],
        num_outputs: int,
        activation: str = "identity",
        loss: LossSpec = "L2",
        *,
        update_rule: UpdateRule | str | None = None,
        seed: int = 0,
    ) -> None:
        terminal = Layer(
            input_shape,
            num_outputs,
            activation,
            _resolve_rule(update_rule),
            seed=seed,
        )
        self._init_state([terminal], loss)

    @classmethod
    def from_layers(
        cls,
        layers: Iterable[Layer],
        *,
        activation: str | None = None,
        loss: LossSpec = "L2",
        update_rule: UpdateRule | str | None = None,
    ) -> "Network":
        """Build a network directly from an explicit layer sequence (copied)."""

        network = cls.__new__(cls)
        candidate = [copy.deepcopy(layer) for layer in layers]
        cls._validate(candidate)
        network._init_state(candidate, loss)
        rule = _resolve_rule(update_rule)
        if rule is not None:
            network.set_update_rule(rule)
        if activation is not None:
            network.set_activations(activation)
        return network

    def _init_state(self, layers: List[Layer], loss: LossSpec) -> None:
        self._layers: List[Layer] = layers
        self._sync_columns()
        self._loss = resolve_loss(loss)
        self._inputs: Array | None = None
        self._target: Array | None = None
        self._outputs: Array | None = None
        self._resid: Array | None = None
        self._scalar_loss: float | None = None
        self._loss_grad: Array | None = None
        self._gradient: Array | None = None
        self._forward_current = False
        self.training_loss: List[float] = []
        self.training_state = TrainingState.INITIAL

    # ------------------------------------------------------------------
    # Shape bookkeeping (derived views)

    @property
    def layer_input_shapes(self) -> List[Shape]:
        return [layer.input_shape for layer in self._layers]

    @property
    def input_shape(self) -> Shape:
        return self._layers[0].input_shape

    @property
    def num_outputs(self) -> int:
        return self._layers[-1].num_outputs

    @property
    def layers(self) -> List[Layer]:
        """Copies of the current layers; mutate through the network instead."""

        return [copy.deepcopy(layer) for layer in self._layers]

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self.layers)

    # ------------------------------------------------------------------
    # Structural mutation

    @staticmethod
    def _validate(candidate: Sequence[Layer]) -> None:
        if not candidate:
            raise ShapeMismatch("a network needs at least one layer")
        seen: set[int] = set()
        for idx, layer in enumerate(candidate):
            if not isinstance(layer, Layer):
                raise TypeError(f"entry {idx} is a {type(layer).__name__}, not a Layer")
            if id(layer) in seen:
                raise ValueError(f"layer at position {idx} appears more than once")
            seen.add(id(layer))
        for idx, (prev, nxt) in enumerate(zip(candidate[:-1], candidate[1:])):
            if prev.num_outputs != nxt.input_shape.rows:
                raise ShapeMismatch(
                    f"layer {idx} produces {prev.num_outputs} outputs but layer "
                    f"{idx + 1} expects {nxt.input_shape.rows} input rows"
                )

    def _commit(self, candidate: List[Layer]) -> None:
        old_input_shape = self.input_shape
        old_num_outputs = self.num_outputs
        self._layers = candidate
        self._sync_columns()
        if self.input_shape != old_input_shape:
            self._inputs = None
        if self.num_outputs != old_num_outputs:
            self._target = None
        self._invalidate_forward()

    def _sync_columns(self) -> None:
        # rows already agree; every layer sees as many sample columns as the first
        cols = self._layers[0].input_shape.cols
        for layer in self._layers[1:]:
            if layer.input_shape.cols != cols:
                layer.set_input_shape(Shape(layer.input_shape.rows, cols))

    def set_layers(self, layers: Iterable[Layer]) -> None:
        """Replace the whole layer sequence with copies of ``layers``."""

        candidate = [copy.deepcopy(layer) for layer in layers]
        self._validate(candidate)
        self._commit(candidate)

    def append_layers(self, layers: MutableSequence[Layer] | Iterable[Layer]) -> None:
        """Move ``layers`` onto the end of the sequence.

        A mutable sequence is emptied, since the network now owns those
        layers. Any other iterable (tuple, generator) cannot be emptied, so
        the network takes copies and the caller's objects stay detached.
        """

        movable = isinstance(layers, MutableSequence)
        if movable:
            incoming = list(layers)
        else:
            incoming = [copy.deepcopy(layer) for layer in layers]
        candidate = self._layers + incoming
        self._validate(candidate)
        self._commit(candidate)
        if movable:
            del layers[:]

    def insert_layer(self, position: int, layer: Layer) -> None:
        """Insert a copy of ``layer`` before ``position`` (``len(self)`` appends)."""

        if not 0 <= position <= len(self._layers):
            raise IndexError(
                f"insert position {position} outside 0..{len(self._layers)}"
            )
        if position == len(self._layers):
            self.append_layers([copy.deepcopy(layer)])
            return
        candidate = list(self._layers)
        candidate.insert(position, copy.deepcopy(layer))
        self._validate(candidate)
        self._commit(candidate)

    # ------------------------------------------------------------------
    # Inputs and target

    @property
    def inputs(self) -> Array | None:
        return None if self._inputs is None else self._inputs.copy()

    def set_inputs(self, inputs: Array, override_input_shape: bool = False) -> None:
        matrix = _as_matrix(inputs)
        shape = Shape.of(matrix)
        if shape != self.input_shape:
            if not override_input_shape:
                raise ShapeMismatch(
                    f"input matrix has shape {shape}, network expects {self.input_shape}"
                )
            first = self._layers[0]
            first.set_input_shape(shape)
            first.set_inputs(matrix)
            self._sync_columns()
            if self._target is not None and self._target.shape[1] not in (1, shape.cols):
                # a per-sample target no longer lines up with the new columns
                self._target = None
        self._inputs = matrix.copy()
        self._invalidate_forward()

    @property
    def target(self) -> Array | None:
        return None if self._target is None else self._target.copy()

    def set_target(self, target: Array, override_target_size: bool = False) -> None:
        matrix = _as_matrix(target)
        if matrix.shape[1] not in (1, self.input_shape.cols):
            raise ShapeMismatch(
                f"target has {matrix.shape[1]} columns, expected 1 or "
                f"{self.input_shape.cols}"
            )
        size = matrix.shape[0]
        if size != self.num_outputs:
            if not override_target_size:
                raise ShapeMismatch(
                    f"target must have length {self.num_outputs}, got {size}"
                )
            self._layers[-1].set_num_outputs(size)
        self._target = matrix.copy()
        self._invalidate_forward()

    # ------------------------------------------------------------------
    # Weights, update rules, activations, loss

    @property
    def weights(self) -> List[Array]:
        return [layer.weights for layer in self._layers]

    def set_weights(self, weights: Sequence[Array]) -> None:
        check_cardinality(weights, len(self._layers), "weight matrix")
        matrices = [np.asarray(w, dtype=np.float64) for w in weights]
        for idx, (layer, matrix) in enumerate(zip(self._layers, matrices)):
            expected = (layer.num_outputs, layer.input_shape.rows)
            if matrix.shape != expected:
                raise ShapeMismatch(
                    f"weights for layer {idx} must have shape {expected}, got {matrix.shape}"
                )
        for layer, matrix in zip(self._layers, matrices):
            layer.set_weights(matrix)
        self._invalidate_forward()

    def set_update_rule(self, rule: UpdateRule | str) -> None:
        resolved = _resolve_rule(rule)
        for layer in self._layers:
            layer.set_update_rule(resolved)

    def set_update_params(self, *args, **kwargs) -> None:
        """Give every layer the same update-rule parameters."""

        params = [layer.update_rule.make_params(*args, **kwargs) for layer in self._layers]
        for layer, value in zip(self._layers, params):
            layer.set_update_params(value)

    def set_update_params_per_layer(self, params_list: Sequence[object]) -> None:
        """Give each layer its own parameters (one entry per layer)."""

        check_cardinality(params_list, len(self._layers), "update-parameter tuple")
        params = []
        for layer, entry in zip(self._layers, params_list):
            rule = layer.update_rule
            if isinstance(entry, rule.params_type):
                params.append(entry)
            elif isinstance(entry, dict):
                params.append(rule.make_params(**entry))
            elif isinstance(entry, tuple):
                params.append(rule.make_params(*entry))
            else:
                params.append(rule.make_params(entry))
        for layer, value in zip(self._layers, params):
            layer.set_update_params(value)

    def set_activations(self, activation: str | Sequence[str]) -> None:
        """Set one activation for every layer, or one per layer."""

        if isinstance(activation, str):
            names = [activation] * len(self._layers)
        else:
            names = list(activation)
            check_cardinality(names, len(self._layers), "activation")
        for name in names:
            activations.get(name)
        for layer, name in zip(self._layers, names):
            layer.set_activation(name)
        self._invalidate_forward()

    @property
    def loss_function(self) -> Loss:
        return self._loss

    def set_loss_function(self, loss: LossSpec, gradient: Callable | None = None) -> None:
        """Select a loss by name, or inject a :class:`Loss` or function pair."""

        if gradient is not None:
            self._loss = Loss.from_functions(loss, gradient)  # type: ignore[arg-type]
        else:
            self._loss = resolve_loss(loss)
        self._invalidate_forward()

    # ------------------------------------------------------------------
    # Forward evaluation

    def _invalidate_forward(self) -> None:
        self._forward_current = False
        self._gradient = None

    def _clear_forward(self) -> None:
        self._invalidate_forward()
        self._outputs = None
        self._resid = None
        self._scalar_loss = None
        self._loss_grad = None

    def _forward(self, inputs: Array | None, target: Array | None) -> None:
        if inputs is not None:
            self.set_inputs(inputs)
        if target is not None:
            self.set_target(target)
        if self._inputs is None:
            raise OrderingViolation("predict called before any inputs were set")

        # outputs and loss are set together or not at all
        self._clear_forward()
        samples = self._inputs.shape[1]
        if self._target is not None and self._target.shape[1] not in (1, samples):
            raise ShapeMismatch(
                f"target has {self._target.shape[1]} columns, inputs have {samples}"
            )

        layer_out = self._inputs
        for layer in self._layers:
            layer.set_inputs(layer_out)
            layer.forward_pass()
            # output of this layer is the input of the next
            layer_out = layer.outputs
        self._outputs = layer_out

        if self._target is None:
            return
        self._resid = layer_out - self._target
        self._scalar_loss = float(self._loss.scalar(layer_out, self._target))
        self._loss_grad = np.broadcast_to(
            np.asarray(self._loss.gradient(layer_out, self._target), dtype=np.float64),
            layer_out.shape,
        ).copy()
        self._forward_current = True

    def predict(self, inputs: Array | None = None, target: Array | None = None) -> None:
        """Run a forward pass, refreshing outputs, loss and loss gradient."""

        self._forward(inputs, target)

    def predict_value(
        self, inputs: Array | None = None, target: Array | None = None
    ) -> Array:
        """Same as :meth:`predict` but also returns a copy of the outputs."""

        self._forward(inputs, target)
        return self.outputs

    @property
    def outputs(self) -> Array:
        if self._outputs is None:
            raise OrderingViolation("outputs are undefined before predict")
        return self._outputs.copy()

    @property
    def residual(self) -> Array:
        if self._resid is None:
            raise OrderingViolation("residual needs a predict with a target set")
        return self._resid.copy()

    @property
    def scalar_loss(self) -> float:
        if self._scalar_loss is None:
            raise OrderingViolation("scalar loss needs a predict with a target set")
        return self._scalar_loss

    @property
    def vector_loss(self) -> Array:
        """Gradient of the scalar loss with respect to the outputs."""

        if self._loss_grad is None:
            raise OrderingViolation("loss gradient needs a predict with a target set")
        return self._loss_grad.copy()

    # ------------------------------------------------------------------
    # Backward propagation and update

    def backward_pass(self) -> None:
        """Propagate the loss gradient from the last layer back to the first."""

        if not self._forward_current or self._loss_grad is None:
            raise OrderingViolation(
                "backward_pass needs a fresh predict with a target set"
            )
        self._layers[-1].backward_pass(self._loss_grad)
        # each layer reads the error its successor has just computed
        for idx in range(len(self._layers) - 2, -1, -1):
            self._layers[idx].backward_pass(self._layers[idx + 1])
        self._gradient = self._layers[0].gradient

    @property
    def gradient(self) -> Array:
        """The first layer's gradient from the latest backward pass."""

        if self._gradient is None:
            raise OrderingViolation("gradient is undefined until backward_pass has run")
        return self._gradient.copy()

    def err_gradient_list(self) -> List[Tuple[Array, Array]]:
        return [(layer.error, layer.gradient) for layer in self._layers]

    def update_weights(self, *args, **kwargs) -> None:
        """Apply each layer's update rule; arguments replace every layer's parameters."""

        if args or kwargs:
            self.set_update_params(*args, **kwargs)
        self._apply_updates()

    def update_weights_per_layer(self, params_list: Sequence[object]) -> None:
        self.set_update_params_per_layer(params_list)
        self._apply_updates()

    def _apply_updates(self) -> None:
        if self._gradient is None:
            raise OrderingViolation(
                "update_weights needs a backward_pass since the last change to the network"
            )
        for layer in self._layers:
            if layer.update_params is None:
                raise OrderingViolation(
                    f"no parameters set for update rule {layer.update_rule.name!r}"
                )
        for layer in self._layers:
            layer.update_weights()
        self._invalidate_forward()

    # ------------------------------------------------------------------
    # Training

    def train(
        self,
        stop_tol: float = 1.0e-5,
        max_iter: int = 1000,
        inputs: Array | None = None,
        target: Array | None = None,
        quiet: bool = False,
        *,
        update_params: object | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> TrainResult:
        """Iterate predict -> backward -> update until ``stop_tol`` or ``max_iter``.

        Iteration 1 always runs. The stopping test looks at the loss recorded
        before the update that just ran, so convergence is noticed one
        iteration late. A NaN loss never counts as converged. Hitting
        ``max_iter`` records exactly ``max_iter`` losses and emits a
        :class:`ConvergenceWarning` unless ``quiet``.
        """

        if max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {max_iter}")
        if isinstance(update_params, Mapping):
            self.set_update_params(**update_params)
        elif isinstance(update_params, tuple):
            self.set_update_params(*update_params)
        elif update_params is not None:
            self.set_update_params(update_params)
        if target is None and self._target is None:
            raise OrderingViolation("train needs a target")

        self.training_state = TrainingState.ITERATING
        self._iterate(inputs, target)
        num_iter = 1
        self._emit_step(num_iter, callbacks)
        while num_iter < max_iter and not self._scalar_loss <= stop_tol:
            self._iterate(None, None)
            num_iter += 1
            self._emit_step(num_iter, callbacks)

        final_loss = float(self.training_loss[-1])
        if not final_loss <= stop_tol:
            # a non-finite loss never meets the tolerance
            self.training_state = TrainingState.MAX_ITER_REACHED
            if not quiet:
                warnings.warn(
                    f"network hit max iterations ({max_iter}) in training; "
                    f"scalar loss is {final_loss:.6g}",
                    ConvergenceWarning,
                    stacklevel=2,
                )
        else:
            self.training_state = TrainingState.CONVERGED
        return TrainResult(
            iterations=num_iter,
            final_loss=final_loss,
            state=self.training_state,
            history_length=len(self.training_loss),
        )

    def _iterate(self, inputs: Array | None, target: Array | None) -> None:
        self.predict(inputs, target)
        self.backward_pass()
        self.training_loss.append(self.scalar_loss)
        self.update_weights()

    def _emit_step(self, step: int, callbacks: Sequence[object] | None) -> None:
        metrics = {"loss": self.training_loss[-1]}
        for callback in callbacks or ():
            if hasattr(callback, "on_step"):
                callback.on_step(step, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(step, metrics)

    # ------------------------------------------------------------------
    # Diagnostics

    def summary(self) -> str:
        rule = "=" * 31
        lines = [rule, "      Network Summary:", "", " (input size) -> (output size)", ""]
        for count, layer in enumerate(self._layers, start=1):
            lines.append(f"Layer {count}: {layer.input_shape} -> ({layer.num_outputs})")
        lines.append(rule)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"Network(input_shape={tuple(self.input_shape)}, "
            f"num_outputs={self.num_outputs}, layers={len(self._layers)}, "
            f"loss={self._loss.name!r})"
        )


def _camel_alias(snake: str, camel: str, getter: bool = False):
    def alias(self, *args, **kwargs):
        target = getattr(self, snake)
        return target if getter else target(*args, **kwargs)

    alias.__name__ = camel
    alias.__doc__ = f"Alias of ``{snake}``."
    return alias


_CAMEL_METHODS = {
    "setInputs": "set_inputs",
    "setTarget": "set_target",
    "setLayers": "set_layers",
    "appendLayers": "append_layers",
    "insertLayer": "insert_layer",
    "setWeights": "set_weights",
    "setUpdateParams": "set_update_params",
    "setActivations": "set_activations",
    "setLossFunc": "set_loss_function",
    "predictVal": "predict_value",
    "backwardPass": "backward_pass",
    "updateWeights": "update_weights",
    "getErrGradientList": "err_gradient_list",
}
_CAMEL_GETTERS = {
    "getInputShape": "input_shape",
    "getLayerInputShapes": "layer_input_shapes",
    "getNumOutputs": "num_outputs",
    "getLayers": "layers",
    "getWeights": "weights",
    "getOutputs": "outputs",
    "getTarget": "target",
    "getScalarLoss": "scalar_loss",
    "getVectorLoss": "vector_loss",
    "getGradient": "gradient",
}
for _camel, _snake in _CAMEL_METHODS.items():
    setattr(Network, _camel, _camel_alias(_snake, _camel))
for _camel, _snake in _CAMEL_GETTERS.items():
    setattr(Network, _camel, _camel_alias(_snake, _camel, getter=True))


__all__ = ["Network"]
