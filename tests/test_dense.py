import logging

import numpy as np
import pytest

from batchnet import Batch, FullyConnectedLayer
from batchnet.initializers import seeded, he_normal, glorot_uniform
from batchnet.layers import Sigmoid, Tanh, ReLU, Identity
from batchnet.optimizer import identity_rule

logger = logging.getLogger(__name__)
EPS = 1e-6


def make_layer(activation="tanh", keep=1.0, seed=0, workers=None):
    return FullyConnectedLayer(
        4,
        3,
        activation=activation,
        initializer=seeded(glorot_uniform, seed),
        dropout_probability=keep,
        rng=np.random.default_rng(seed),
        max_workers=workers,
    )


def test_activation_functions():
    z = np.array([-2.0, 0.0, 3.0])
    np.testing.assert_allclose(ReLU()(z), [0.0, 0.0, 3.0])
    np.testing.assert_allclose(ReLU().derivative(z), [0.0, 0.0, 1.0])
    np.testing.assert_allclose(Sigmoid()(z), 1 / (1 + np.exp(-z)))
    np.testing.assert_allclose(Tanh().derivative(z), 1 - np.tanh(z) ** 2)
    np.testing.assert_array_equal(Identity()(z), z)
    assert np.all(np.isfinite(Sigmoid()(np.array([-1e4, 1e4]))))


@pytest.mark.parametrize("activation", ["tanh", "sigmoid", "identity"])
def test_gradients_match_finite_differences(activation):
    rng = np.random.default_rng(1)
    layer = make_layer(activation)
    x = rng.normal(size=4)
    r = rng.normal(size=3)  # loss = r . a, so dL/da = r

    def loss(weights, biases):
        probe = make_layer(activation)
        probe.weights = weights
        probe.biases = biases
        out, _ = probe.forward(Batch([x]))
        return float(r @ out[0])

    _, ctx = layer.forward(Batch([x]))
    propagated = layer.backward(ctx, Batch([r]))
    analytic = layer.get_gradients()[0]

    w, b = layer.weights.copy(), layer.biases.copy()
    numeric = []
    for i in range(w.size):
        up, down = w.copy(), w.copy()
        up[i] += EPS
        down[i] -= EPS
        numeric.append((loss(up, b) - loss(down, b)) / (2 * EPS))
    for i in range(b.size):
        up, down = b.copy(), b.copy()
        up[i] += EPS
        down[i] -= EPS
        numeric.append((loss(w, up) - loss(w, down)) / (2 * EPS))
    logger.debug("max abs diff: %g", np.max(np.abs(analytic - numeric)))
    np.testing.assert_allclose(analytic, numeric, atol=1e-6)

    # input gradient
    numeric_x = []
    for j in range(4):
        up, down = x.copy(), x.copy()
        up[j] += EPS
        down[j] -= EPS
        out_up, _ = layer.forward(Batch([up]))
        out_down, _ = layer.forward(Batch([down]))
        numeric_x.append(float(r @ (out_up[0] - out_down[0])) / (2 * EPS))
    np.testing.assert_allclose(propagated[0], numeric_x, atol=1e-6)


def test_no_dropout_when_keep_is_one():
    layer = make_layer("relu", keep=1.0)
    x = Batch.from_array(np.random.default_rng(2).normal(size=(6, 4)))
    train_out, _ = layer.forward(x, training=True)
    eval_out, _ = layer.forward(x, training=False)
    np.testing.assert_array_equal(train_out.to_array(), eval_out.to_array())


def test_dropout_only_while_training():
    layer = make_layer("identity", keep=0.5)
    x = Batch.from_array(np.ones((50, 4)))
    train_out, ctx = layer.forward(x, training=True)
    eval_out, _ = layer.forward(x, training=False)
    values = train_out.to_array()
    reference = eval_out.to_array()
    dropped = values == 0.0
    assert dropped.any() and (~dropped).any()
    # kept units are scaled by 1/keep
    np.testing.assert_allclose(values[~dropped], 2.0 * reference[~dropped])

    layer.backward(ctx, Batch.from_array(np.ones((50, 3))))
    grads = layer.get_gradients().to_array()
    bias_grads = grads[:, 12:]
    np.testing.assert_array_equal(bias_grads == 0.0, dropped)


def test_dropout_masks_do_not_depend_on_worker_count():
    x = Batch.from_array(np.random.default_rng(3).normal(size=(40, 4)))
    results = []
    for workers in (1, 3, 16):
        layer = make_layer("relu", keep=0.7, seed=5, workers=workers)
        out, _ = layer.forward(x, training=True)
        results.append(out.to_array())
    np.testing.assert_array_equal(results[0], results[1])
    np.testing.assert_array_equal(results[0], results[2])


def test_default_he_initialisation_scale():
    layer = FullyConnectedLayer(50, 10, initializer=seeded(he_normal, 0))
    assert np.max(np.abs(layer.weights)) <= np.sqrt(2 / 50)
    assert layer.kind == "dense"


def test_identity_update_keeps_parameters():
    layer = make_layer("relu")
    w = layer.weights.copy()
    _, ctx = layer.forward(Batch([[1.0, -1.0, 0.5, 2.0]]))
    layer.backward(ctx, Batch([[1.0, 1.0, 1.0]]))
    layer.update(layer.get_gradients(), identity_rule)
    np.testing.assert_array_equal(layer.weights, w)
