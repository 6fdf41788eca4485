from __future__ import annotations

import warnings
from typing import List, Mapping, Tuple

import numpy as np
import pytest

from chainnet.core.errors import ConvergenceWarning, OrderingViolation
from chainnet.core.layer import Layer
from chainnet.core.types import TrainingState
from chainnet.training.network import Network

INPUTS = np.array([[1.0], [0.5]])
TARGET = np.array([2.0])


class _Capture:
    def __init__(self) -> None:
        self.history: List[Tuple[int, Mapping[str, float]]] = []

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self.history.append((step, dict(metrics)))


def _linear_net(update_rule: str = "sgd") -> Network:
    hidden = Layer((2, 1), 2, "identity", weights=np.array([[0.5, 0.2], [0.1, 0.3]]))
    output = Layer((2, 1), 1, "identity", weights=np.array([[0.4, 0.6]]))
    net = Network.from_layers([hidden, output], loss="L2", update_rule=update_rule)
    net.set_inputs(INPUTS)
    net.set_target(TARGET)
    return net


def test_two_layer_linear_network_converges_monotonically():
    net = _linear_net()
    result = net.train(stop_tol=1e-8, max_iter=2000, update_params=0.05)

    assert result.state is TrainingState.CONVERGED
    assert result.converged
    assert result.iterations < 2000
    history = net.training_loss
    assert len(history) == result.iterations == result.history_length
    for prev, curr in zip(history[1:], history[2:]):
        assert curr <= prev
    assert np.allclose(net.predict_value(), TARGET, atol=1e-3)


def test_convergence_is_detected_after_the_update():
    net = _linear_net()
    net.train(stop_tol=1e-4, max_iter=2000, update_params=0.05)
    history = net.training_loss
    assert history[-1] <= 1e-4
    assert all(loss > 1e-4 for loss in history[:-1])


def test_hitting_max_iter_warns_and_records_every_iteration():
    net = _linear_net()
    with pytest.warns(ConvergenceWarning, match="max iterations"):
        result = net.train(stop_tol=0.0, max_iter=5, update_params=0.01)
    assert result.state is TrainingState.MAX_ITER_REACHED
    assert net.training_state is TrainingState.MAX_ITER_REACHED
    assert len(net.training_loss) == 5
    assert result.final_loss == net.training_loss[-1]


def test_quiet_training_suppresses_the_warning():
    net = _linear_net()
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        result = net.train(stop_tol=0.0, max_iter=3, quiet=True, update_params=0.01)
    assert result.iterations == 3


def test_first_iteration_always_runs():
    net = _linear_net()
    result = net.train(stop_tol=1e6, max_iter=10, update_params=0.01)
    assert result.iterations == 1
    assert result.state is TrainingState.CONVERGED


def test_history_accumulates_across_calls_and_callbacks_fire():
    net = _linear_net()
    capture = _Capture()
    net.train(max_iter=3, quiet=True, update_params=0.01, callbacks=[capture])
    calls = []
    net.train(max_iter=2, quiet=True, callbacks=[lambda step, m: calls.append(step)])
    assert len(net.training_loss) == 5
    assert [step for step, _ in capture.history] == [1, 2, 3]
    assert capture.history[0][1]["loss"] == net.training_loss[0]
    assert calls == [1, 2]


def test_train_requires_update_params_and_target():
    net = _linear_net()
    with pytest.raises(OrderingViolation):
        net.train(max_iter=2)

    bare = Network((2, 1), 1)
    bare.set_inputs(INPUTS)
    with pytest.raises(OrderingViolation):
        bare.train(max_iter=2, update_params=0.1)
    with pytest.raises(ValueError):
        bare.train(max_iter=0, target=TARGET)


def test_momentum_training_reduces_loss():
    net = _linear_net("momentum")
    net.set_update_params(lr=0.01, beta=0.5)
    net.train(stop_tol=1e-6, max_iter=500, quiet=True)
    assert net.training_loss[-1] < net.training_loss[0]


def test_train_accepts_fresh_inputs_and_target():
    net = Network((2, 1), 1, update_rule="sgd", seed=3)
    result = net.train(
        stop_tol=1e-10,
        max_iter=3000,
        inputs=INPUTS,
        target=TARGET,
        update_params=0.1,
    )
    assert result.converged
    assert net.training_loss[-1] <= 1e-10


def test_diverging_run_is_never_reported_as_converged():
    net = Network.from_layers(
        [Layer((2, 1), 2, seed=1), Layer((2, 1), 1, seed=2)], update_rule="sgd"
    )
    net.set_inputs(np.full((2, 1), 10.0))
    net.set_target(np.array([1.0]))
    with np.errstate(all="ignore"), pytest.warns(ConvergenceWarning):
        result = net.train(stop_tol=1e-5, max_iter=200, update_params=5.0)

    assert result.state is TrainingState.MAX_ITER_REACHED
    assert not result.converged
    assert result.iterations == 200
    assert len(net.training_loss) == 200
    assert not np.isfinite(result.final_loss)


def test_train_accepts_update_params_mapping():
    net = _linear_net("momentum")
    result = net.train(
        stop_tol=1e-6, max_iter=500, quiet=True, update_params={"lr": 0.01, "beta": 0.5}
    )
    assert all(layer.update_params.lr == 0.01 for layer in net)
    assert all(layer.update_params.beta == 0.5 for layer in net)
    assert result.final_loss < net.training_loss[0]
