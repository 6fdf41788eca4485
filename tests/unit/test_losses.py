import numpy as np
import pytest

from chainnet.core.errors import ErrorKind, UnknownLossName
from chainnet.training.losses import REGISTRY, Loss, LossRegistry, resolve


def test_l2_loss_and_gradient():
    pred = np.array([[1.0], [3.0]])
    target = np.array([[0.0], [1.0]])
    loss, grad = REGISTRY.get("L2")(pred, target)
    assert loss == pytest.approx(0.5 * (1.0 + 4.0))
    assert np.allclose(grad, pred - target)


def test_mean_losses_scale_by_size():
    pred = np.array([[2.0, 0.0]])
    target = np.zeros((1, 2))
    loss, grad = REGISTRY.get("mse")(pred, target)
    assert loss == pytest.approx(2.0)
    assert np.allclose(grad, [[2.0, 0.0]])
    loss, grad = REGISTRY.get("mae")(pred, target)
    assert loss == pytest.approx(1.0)
    assert np.allclose(grad, [[0.5, 0.0]])


def test_unknown_loss_name_is_an_error():
    with pytest.raises(UnknownLossName) as info:
        REGISTRY.get("L3")
    assert info.value.kind is ErrorKind.UNKNOWN_LOSS_NAME
    assert "Available losses" in str(info.value)
    assert isinstance(info.value, KeyError)


def test_module_registry_is_read_only():
    assert REGISTRY.frozen
    with pytest.raises(RuntimeError):
        REGISTRY.register("zero", lambda p, t: 0.0, lambda p, t: p * 0)


def test_private_registry_accepts_registrations():
    registry = LossRegistry()
    registry.register("zero", lambda p, t: 0.0, lambda p, t: p * 0)
    assert list(registry.names()) == ["zero"]
    assert "zero" in registry


def test_resolve_accepts_names_losses_and_pairs():
    assert resolve("huber").name == "huber"
    custom = Loss.from_functions(lambda p, t: 1.0, lambda p, t: p)
    assert resolve(custom) is custom
    pair = resolve((lambda p, t: 2.0, lambda p, t: t))
    assert pair.name == "custom"
    assert pair(np.zeros(1), np.ones(1))[0] == 2.0
    with pytest.raises(TypeError):
        resolve(3)
