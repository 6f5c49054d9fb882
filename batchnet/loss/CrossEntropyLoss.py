import numpy as np

from ..helpers.Batch import Batch
from ..helpers.errors import ShapeMismatchError


class CrossEntropyLoss:
    def __init__(self, eps=1e-12):
        self.eps = eps
        # cache from forward
        self.probs = None
        self.Y = None

    def forward(self, probs, targets):
        """
        probs: Batch of softmax outputs, (batch, num_classes)
        targets: Batch of one-hot (or soft) targets, same shape
        returns: mean categorical cross-entropy over the batch
        """
        probs = probs if isinstance(probs, Batch) else Batch(probs)
        targets = targets if isinstance(targets, Batch) else Batch(targets)
        if probs.size != targets.size:
            raise ShapeMismatchError(
                f"got {targets.size} targets for {probs.size} predictions"
            )
        P = probs.to_array()
        Y = targets.to_array()
        if P.shape != Y.shape:
            raise ShapeMismatchError(f"predictions {P.shape} and targets {Y.shape} differ")

        self.probs = P
        self.Y = Y
        return float(-np.sum(Y * np.log(P + self.eps)) / P.shape[0])

    def backward(self):
        """
        dL/dsummation = probs - Y, per example.
        This is the fused softmax+CE gradient the Softmax layer expects.
        Not divided by the batch size: Layer.update takes the mean.
        """
        if self.probs is None or self.Y is None:
            raise ValueError("Must call forward() before backward()")
        return Batch(list(self.probs - self.Y))
