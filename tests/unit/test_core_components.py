import numpy as np
import pytest

from chainnet.core import activations
from chainnet.core.errors import (
    OrderingViolation,
    ShapeMismatch,
    UnknownActivationName,
    UnknownUpdateRule,
)
from chainnet.core.layer import Layer
from chainnet.core.strategies import (
    ClippedGradientDescent,
    ClipParams,
    GradientDescent,
    LearningRate,
    Momentum,
    MomentumParams,
    get_rule,
)
from chainnet.core.types import Shape


def test_activation_registry_pairs():
    x = np.array([-1.0, 0.0, 2.5])
    assert np.allclose(activations.get("relu")(x), [0.0, 0.0, 2.5])
    assert np.allclose(activations.get("identity").deriv(x), 1.0)
    tanh = activations.get("tanh")
    assert np.allclose(tanh.deriv(x), 1.0 - np.tanh(x) ** 2)
    assert np.allclose(activations.get("softplus")(np.array([0.0])), np.log(2.0))
    assert "sigmoid" in activations.names()


def test_unknown_activation_lists_available_names():
    with pytest.raises(UnknownActivationName, match="Available activations"):
        activations.get("swish")
    with pytest.raises(KeyError):
        activations.get("swish")


def test_update_rule_params_construction():
    rule = GradientDescent()
    assert rule.make_params(0.1) == LearningRate(0.1)
    assert rule.make_params(lr=0.2) == LearningRate(0.2)
    assert rule.make_params((0.3,)) == LearningRate(0.3)
    params = LearningRate(0.4)
    assert rule.make_params(params) is params
    assert Momentum().make_params(0.1, 0.5) == MomentumParams(0.1, 0.5)


def test_gradient_descent_and_clipping():
    weights = np.array([[1.0, -1.0]])
    gradient = np.array([[4.0, -0.5]])
    sgd = GradientDescent()
    updated, state = sgd.apply(weights, gradient, LearningRate(0.5), sgd.init(weights.shape))
    assert np.allclose(updated, [[-1.0, -0.75]])
    assert state.steps == 1

    clipped = ClippedGradientDescent()
    updated, _ = clipped.apply(
        weights, gradient, ClipParams(lr=1.0, clip=1.0), clipped.init(weights.shape)
    )
    assert np.allclose(updated, [[0.0, -0.5]])


def test_momentum_accumulates_velocity():
    rule = Momentum()
    weights = np.zeros((1, 2))
    gradient = np.ones((1, 2))
    params = MomentumParams(lr=0.1, beta=0.5)
    state = rule.init(weights.shape)
    weights, state = rule.apply(weights, gradient, params, state)
    assert np.allclose(weights, -0.1)
    weights, state = rule.apply(weights, gradient, params, state)
    # velocity = 0.5 * 1 + 1
    assert np.allclose(weights, -0.1 - 0.15)
    assert state.steps == 2


def test_get_rule_by_name():
    assert isinstance(get_rule("momentum"), Momentum)
    with pytest.raises(UnknownUpdateRule):
        get_rule("adam")


def test_layer_forward_and_terminal_backward():
    W = np.array([[1.0, 2.0], [0.5, -1.0]])
    X = np.array([[1.0, 0.0, 2.0], [1.0, 1.0, -1.0]])
    layer = Layer((2, 3), 2, "identity", weights=W)
    layer.set_inputs(X)
    layer.forward_pass()
    assert np.allclose(layer.outputs, W @ X)

    loss_grad = np.ones((2, 3))
    layer.backward_pass(loss_grad)
    assert np.allclose(layer.error, loss_grad)
    assert np.allclose(layer.gradient, loss_grad @ X.T)
    assert layer.gradient.shape == layer.weights.shape


def test_layer_gradient_undefined_before_backward():
    layer = Layer((3, 1), 2)
    with pytest.raises(OrderingViolation):
        layer.gradient
    with pytest.raises(OrderingViolation):
        layer.error
    with pytest.raises(OrderingViolation):
        layer.backward_pass(np.ones(2))


def test_layer_update_uses_stored_params_and_goes_stale():
    W = np.array([[1.0, 1.0]])
    layer = Layer((2, 1), 1, weights=W)
    layer.set_inputs(np.array([[1.0], [2.0]]))
    layer.forward_pass()
    layer.backward_pass(np.array([1.0]))
    with pytest.raises(OrderingViolation):
        layer.update_weights()
    layer.set_update_params(0.1)
    layer.update_weights()
    assert np.allclose(layer.weights, [[0.9, 0.8]])
    with pytest.raises(OrderingViolation):
        layer.gradient


def test_layer_weight_and_shape_checks():
    layer = Layer((3, 2), 4, seed=7)
    assert layer.weights.shape == (4, 3)
    with pytest.raises(ShapeMismatch):
        layer.set_weights(np.zeros((3, 4)))
    with pytest.raises(ShapeMismatch):
        layer.set_inputs(np.zeros((2, 2)))

    layer.set_input_shape((5, 2))
    assert layer.input_shape == Shape(5, 2)
    assert layer.weights.shape == (4, 5)
    layer.set_num_outputs(2)
    assert layer.weights.shape == (2, 5)
    assert layer.output_shape == Shape(2, 2)


def test_layer_weights_are_deterministic_per_seed():
    a = Layer((3, 1), 2, seed=4)
    b = Layer((3, 1), 2, seed=4)
    c = Layer((3, 1), 2, seed=5)
    assert np.array_equal(a.weights, b.weights)
    assert not np.array_equal(a.weights, c.weights)
