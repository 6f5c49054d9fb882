import threading
from collections import namedtuple
from contextlib import contextmanager

import numpy as np

from ..helpers.Batch import Batch
from ..helpers.Parallel import parallel_map
from ..helpers.errors import SequenceError, ShapeMismatchError
from ..initializers import glorot_uniform

# One entry of the gradient accumulator: per-example weight gradient
# (flat, same layout as Layer.weights) and bias gradient.
GradientPair = namedtuple("GradientPair", ["weights", "biases"])


class ForwardContext:
    """
    Token returned by Layer.forward and consumed by the matching backward.

    It pins the inputs (and any per-example cache such as summations or
    dropout masks) to the layer that produced it and to the parameter
    version that was live at the time, so a stale or reused context is
    refused instead of silently corrupting the gradients.
    """

    __slots__ = ("layer", "inputs", "cache", "version", "training", "consumed")

    def __init__(self, layer, inputs, cache, version, training):
        self.layer = layer
        self.inputs = inputs
        self.cache = cache
        self.version = version
        self.training = training
        self.consumed = False

    @property
    def size(self):
        return self.inputs.size

    def __repr__(self):
        state = "consumed" if self.consumed else "pending"
        return f"<ForwardContext {self.layer.name} size={self.size} {state}>"


class Layer:
    """
    Base class for every layer with a dense (inputs x outputs) weight block.

    Weights live in a flat array of length inputs*outputs; the weight
    connecting input j to output i sits at i + outputs*j. Biases have
    length outputs and start at zero.

    Per call sequence on one instance:
        outputs, ctx = layer.forward(batch, training=True)
        deltas_below = layer.backward(ctx, deltas)
        grads = layer.get_gradients()          # optionally set_gradients(...)
        layer.update(grads, rule)

    Subclasses provide _forward_example and _backward_example; the base
    class owns validation, the parallel map and the gradient accumulator.
    """

    kind = "layer"

    def __init__(
        self,
        inputs,
        outputs,
        initializer=glorot_uniform,
        activation=None,
        dropout_probability=1.0,
        max_workers=None,
        name=None,
    ):
        if inputs <= 0 or outputs <= 0:
            raise ValueError(f"inputs and outputs must be positive, got {inputs}, {outputs}")
        if not 0.0 < dropout_probability <= 1.0:
            raise ValueError(
                f"dropout_probability must be in (0, 1], got {dropout_probability}"
            )
        self.inputs = int(inputs)
        self.outputs = int(outputs)
        self.activation = activation
        self.dropout_probability = float(dropout_probability)
        self.max_workers = max_workers
        self.name = name or self.__class__.__name__
        self.trainable = True

        length = self.inputs * self.outputs
        self._weights = np.array(
            [initializer(self.inputs, self.outputs) for _ in range(length)],
            dtype=np.float64,
        )
        self._biases = np.zeros(self.outputs, dtype=np.float64)

        self._version = 0
        self._gradients = None
        self._busy = threading.Lock()

    # -------- parameters --------
    # Read-only views: parameters change only through update() or the
    # setters, both of which invalidate outstanding forward contexts.
    @property
    def weights(self):
        return _read_only(self._weights)

    @weights.setter
    def weights(self, value):
        value = np.asarray(value, dtype=np.float64).reshape(-1)
        if value.shape[0] != self.inputs * self.outputs:
            raise ShapeMismatchError(
                f"{self.name}: expected {self.inputs * self.outputs} weights, got {value.shape[0]}"
            )
        self._weights = value.copy()
        self._version += 1

    @property
    def biases(self):
        return _read_only(self._biases)

    @biases.setter
    def biases(self, value):
        value = np.asarray(value, dtype=np.float64).reshape(-1)
        if value.shape[0] != self.outputs:
            raise ShapeMismatchError(
                f"{self.name}: expected {self.outputs} biases, got {value.shape[0]}"
            )
        self._biases = value.copy()
        self._version += 1

    def weight_matrix(self):
        # (inputs, outputs) view: weight_matrix()[j, i] == weights[i + outputs*j]
        return self._weights.reshape(self.inputs, self.outputs)

    def params(self):
        # Parameters designated for persistence
        return [self.weights, self.biases]

    @property
    def gradient_length(self):
        return self.inputs * self.outputs + self.outputs

    # -------- subclass hooks --------
    def _prepare_forward(self, inputs, training):
        # Per-batch state computed sequentially before the parallel map
        return None

    def _forward_example(self, x, W, prepared, index):
        # return: (activation, cache)
        raise NotImplementedError

    def _backward_example(self, d, x, cache, W):
        # return: (propagated delta, weight gradient (inputs, outputs), bias gradient)
        raise NotImplementedError

    # -------- contract --------
    def forward(self, inputs, training=False):
        inputs = self._as_batch(inputs)
        inputs.check_width(self.inputs, "input vector")
        with self._exclusive("forward"):
            W = self.weight_matrix()
            prepared = self._prepare_forward(inputs, training)
            results = parallel_map(
                lambda index, x: self._forward_example(x, W, prepared, index),
                inputs,
                self.max_workers,
            )
            context = ForwardContext(
                self, inputs, [cache for _, cache in results], self._version, training
            )
        return Batch([activation for activation, _ in results]), context

    def backward(self, context, deltas):
        if not isinstance(context, ForwardContext) or context.layer is not self:
            raise SequenceError(f"{self.name}.backward needs a context from its own forward")
        if context.consumed:
            raise SequenceError(f"{self.name}.backward called twice for the same forward")
        if context.version != self._version:
            raise SequenceError(
                f"{self.name}: parameters changed since this forward; run forward again"
            )
        deltas = self._as_batch(deltas)
        if deltas.size != context.size:
            raise ShapeMismatchError(
                f"{self.name}: got {deltas.size} deltas for a forward batch of {context.size}"
            )
        deltas.check_width(self.outputs, "delta vector")

        with self._exclusive("backward"):
            # a failed backward must not leave earlier gradients pending
            self._gradients = None
            W = self.weight_matrix()
            results = parallel_map(
                lambda index, d: self._backward_example(
                    d, context.inputs[index], context.cache[index], W
                ),
                deltas,
                self.max_workers,
            )
            context.consumed = True
            context.cache = None
            self._gradients = [
                GradientPair(np.ravel(weight_grad), np.array(bias_grad, dtype=np.float64))
                for _, weight_grad, bias_grad in results
            ]
        return Batch([propagated for propagated, _, _ in results])

    def get_gradients(self):
        """Per example, weight gradient followed by bias gradient as one flat vector."""
        pending = self._pending("get_gradients")
        return Batch([np.concatenate([pair.weights, pair.biases]) for pair in pending])

    def set_gradients(self, transform):
        """
        Rewrite every stored gradient in place with
        transform(is_weight, value, index) -> value, where index is the
        position inside the weight or bias vector.
        """
        pending = self._pending("set_gradients")
        with self._exclusive("set_gradients"):
            rewritten = [
                GradientPair(
                    self._transformed(pair.weights, True, transform),
                    self._transformed(pair.biases, False, transform),
                )
                for pair in pending
            ]
            for pair, new in zip(pending, rewritten):
                pair.weights[...] = new.weights
                pair.biases[...] = new.biases

    def update(self, gradients, rule):
        """
        Mean-reduce `gradients` (one flat vector per example, as from
        get_gradients) and apply rule(value, mean_gradient) -> value to
        every weight and bias in place. The accumulator is dropped after.
        """
        pending = self._pending("update")
        gradients = self._as_batch(gradients)
        if gradients.size != len(pending):
            raise ShapeMismatchError(
                f"{self.name}: got {gradients.size} gradient vectors for a batch of {len(pending)}"
            )
        gradients.check_width(self.gradient_length, "gradient vector")

        with self._exclusive("update"):
            # fixed reduction order: slot 0 accumulates slots 1..n-1 in turn
            total = np.array(gradients[0], dtype=np.float64, copy=True)
            for i in range(1, gradients.size):
                total += gradients[i]
            mean = total / gradients.size

            length = self.inputs * self.outputs
            apply = np.vectorize(rule, otypes=[np.float64])
            # nothing is written until the rule has succeeded for every value
            new_weights = apply(self._weights, mean[:length])
            new_biases = apply(self._biases, mean[length:])
            self._weights[...] = new_weights
            self._biases[...] = new_biases

            self._gradients = None
            self._version += 1

    # -------- helpers --------
    def _pending(self, operation):
        if self._gradients is None:
            raise SequenceError(f"{self.name}.{operation} called without a pending backward")
        return self._gradients

    @contextmanager
    def _exclusive(self, operation):
        if not self._busy.acquire(blocking=False):
            raise SequenceError(f"{self.name}.{operation} re-entered while another call is running")
        try:
            yield
        finally:
            self._busy.release()

    @staticmethod
    def _as_batch(value):
        return value if isinstance(value, Batch) else Batch(value)

    @staticmethod
    def _transformed(vector, is_weight, transform):
        return np.array(
            [transform(is_weight, float(v), i) for i, v in enumerate(vector)],
            dtype=np.float64,
        )

    def __repr__(self):
        return f"<{self.name} {self.kind} {self.inputs}->{self.outputs}>"


def _read_only(array):
    view = array.view()
    view.flags.writeable = False
    return view
