import numpy as np

from .Layer import Layer
from .Activation import Softmax as SoftmaxFunction
from ..initializers import glorot_uniform


class Softmax(Layer):
    """
    Fully connected output layer with a softmax activation.

    backward() expects each delta to be the fused softmax + categorical
    cross-entropy gradient (probabilities - targets), as produced by
    CrossEntropyLoss.backward(). It does NOT multiply by the softmax
    Jacobian, so pairing this layer with any other loss gives wrong
    gradients.
    """

    kind = "softmax"

    def __init__(self, inputs, outputs, initializer=glorot_uniform, max_workers=None, name=None):
        super().__init__(
            inputs,
            outputs,
            initializer=initializer,
            activation=SoftmaxFunction(),
            max_workers=max_workers,
            name=name,
        )

    def _forward_example(self, x, W, prepared, index):
        # summation[i] = sum_j x[j] * weights[i + outputs*j] + biases[i]
        summation = x @ W + self._biases
        return self.activation(summation), None

    def _backward_example(self, d, x, cache, W):
        propagated = W @ d
        weight_grad = np.outer(x, d)  # (inputs, outputs)
        return propagated, weight_grad, d
