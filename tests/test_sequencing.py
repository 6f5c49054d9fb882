import threading

import numpy as np
import pytest

from batchnet import Batch, Softmax, FullyConnectedLayer, SequenceError, ShapeMismatchError
from batchnet.initializers import seeded, glorot_uniform
from batchnet.optimizer import SGDOptimizer

X = Batch([[1.0, 2.0, 3.0], [0.5, -1.0, 2.0]])
D = Batch([[0.1, -0.1], [-0.3, 0.3]])


def make_layer():
    return Softmax(3, 2, initializer=seeded(glorot_uniform, 1))


def test_backward_twice_for_one_forward():
    layer = make_layer()
    _, ctx = layer.forward(X)
    layer.backward(ctx, D)
    with pytest.raises(SequenceError, match="invalid call sequence"):
        layer.backward(ctx, D)


def test_update_without_backward():
    layer = make_layer()
    layer.forward(X)
    with pytest.raises(SequenceError):
        layer.update(Batch([np.zeros(8), np.zeros(8)]), SGDOptimizer())


def test_update_twice_after_one_backward():
    layer = make_layer()
    _, ctx = layer.forward(X)
    layer.backward(ctx, D)
    grads = layer.get_gradients()
    layer.update(grads, SGDOptimizer())
    with pytest.raises(SequenceError):
        layer.update(grads, SGDOptimizer())


def test_gradient_access_without_backward():
    layer = make_layer()
    with pytest.raises(SequenceError):
        layer.get_gradients()
    with pytest.raises(SequenceError):
        layer.set_gradients(lambda is_weight, value, index: value)


def test_context_from_another_layer():
    a, b = make_layer(), make_layer()
    _, ctx = a.forward(X)
    with pytest.raises(SequenceError):
        b.backward(ctx, D)
    with pytest.raises(SequenceError):
        b.backward(None, D)


def test_context_older_than_last_update():
    layer = make_layer()
    _, first = layer.forward(X)
    _, second = layer.forward(X)
    layer.backward(first, D)
    layer.update(layer.get_gradients(), SGDOptimizer())
    with pytest.raises(SequenceError):
        layer.backward(second, D)


def test_two_pending_forwards_do_not_interfere():
    layer = make_layer()
    other = Batch([[3.0, 2.0, 1.0], [0.0, 0.0, 1.0]])
    _, first = layer.forward(X)
    _, second = layer.forward(other)
    layer.backward(first, D)
    grads = layer.get_gradients().to_array()
    np.testing.assert_allclose(grads[0, :6], np.outer(X[0], D[0]).ravel())


def test_loading_parameters_invalidates_contexts():
    layer = make_layer()
    _, ctx = layer.forward(X)
    layer.weights = np.zeros(6)
    with pytest.raises(SequenceError):
        layer.backward(ctx, D)


def test_delta_batch_size_mismatch():
    layer = make_layer()
    _, ctx = layer.forward(X)
    with pytest.raises(ShapeMismatchError, match="2"):
        layer.backward(ctx, Batch([[0.1, -0.1]]))
    # the context survives a rejected call
    layer.backward(ctx, D)


def test_vector_length_mismatches():
    layer = make_layer()
    with pytest.raises(ShapeMismatchError):
        layer.forward(Batch([[1.0, 2.0]]))
    _, ctx = layer.forward(X)
    with pytest.raises(ShapeMismatchError):
        layer.backward(ctx, Batch([[0.1, 0.2, 0.3], [0.1, 0.2, 0.3]]))
    layer.backward(ctx, D)
    with pytest.raises(ShapeMismatchError):
        layer.update(Batch([np.zeros(7), np.zeros(7)]), SGDOptimizer())
    with pytest.raises(ShapeMismatchError):
        layer.update(Batch([np.zeros(8)]), SGDOptimizer())


def test_parameter_setters_validate_length():
    layer = make_layer()
    with pytest.raises(ShapeMismatchError):
        layer.weights = np.zeros(5)
    with pytest.raises(ShapeMismatchError):
        layer.biases = np.zeros(3)


def test_constructor_validation():
    with pytest.raises(ValueError):
        Softmax(0, 2)
    with pytest.raises(ValueError):
        FullyConnectedLayer(2, 2, dropout_probability=0.0)
    with pytest.raises(ValueError):
        FullyConnectedLayer(2, 2, dropout_probability=1.5)
    with pytest.raises(ValueError):
        FullyConnectedLayer(2, 2, activation="swish")


class BlockingSoftmax(Softmax):
    # holds the first example of a forward until `release` is set
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.block = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def _forward_example(self, x, W, prepared, index):
        if self.block and index == 0:
            self.entered.set()
            self.release.wait(timeout=5)
        return super()._forward_example(x, W, prepared, index)


def test_reentry_while_forward_is_running():
    layer = BlockingSoftmax(3, 2, initializer=seeded(glorot_uniform, 1), max_workers=1)
    _, ctx = layer.forward(X)
    layer.backward(ctx, D)
    grads = layer.get_gradients()
    weights = layer.weights.copy()

    layer.block = True
    results = []
    worker = threading.Thread(target=lambda: results.append(layer.forward(X)))
    worker.start()
    try:
        assert layer.entered.wait(timeout=5)
        with pytest.raises(SequenceError, match="re-entered"):
            layer.forward(X)
        with pytest.raises(SequenceError, match="re-entered"):
            layer.update(grads, SGDOptimizer())
        with pytest.raises(SequenceError, match="re-entered"):
            layer.set_gradients(lambda is_weight, value, index: value)
    finally:
        layer.release.set()
        worker.join(timeout=5)

    assert len(results) == 1
    np.testing.assert_array_equal(layer.weights, weights)
    # the guard is released once the running call returns
    layer.block = False
    layer.update(grads, SGDOptimizer())
    _, again = layer.forward(X)
    layer.backward(again, D)
