import numpy as np

from .Layer import Layer
from . import Activation
from ..initializers import he_normal


class FullyConnectedLayer(Layer):
    kind = "dense"

    def __init__(
        self,
        in_features,
        out_features,
        activation="relu",
        initializer=he_normal,
        dropout_probability=1.0,
        rng=None,
        max_workers=None,
        name=None,
    ):
        # dropout_probability is the KEEP probability; 1.0 disables dropout
        super().__init__(
            in_features,
            out_features,
            initializer=initializer,
            activation=Activation.get(activation),
            dropout_probability=dropout_probability,
            max_workers=max_workers,
            name=name,
        )
        self.rng = rng if rng is not None else np.random.default_rng()

    def _prepare_forward(self, inputs, training):
        if not training or self.dropout_probability >= 1.0:
            return None
        # Masks are drawn up front, in batch order, so they do not depend on
        # how the examples are split across workers. Inverted dropout: kept
        # units are scaled by 1/p and inference needs no rescaling.
        keep = self.dropout_probability
        drawn = self.rng.random((inputs.size, self.outputs))
        return (drawn < keep).astype(np.float64) / keep

    def _forward_example(self, x, W, masks, index):
        z = x @ W + self._biases
        a = self.activation(z)
        mask = None if masks is None else masks[index]
        if mask is not None:
            a = a * mask
        return a, (z, mask)

    def _backward_example(self, d, x, cache, W):
        z, mask = cache
        g = d * self.activation.derivative(z)
        if mask is not None:
            g = g * mask
        return W @ g, np.outer(x, g), g
