import numpy as np


class Activation:
    # Element-wise activations implement both; derivative is taken at the
    # pre-activation z.
    name = "activation"

    def __call__(self, z):
        raise NotImplementedError

    def derivative(self, z):
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class Identity(Activation):
    name = "identity"

    def __call__(self, z):
        return z

    def derivative(self, z):
        return np.ones_like(z)


class Sigmoid(Activation):
    name = "sigmoid"

    def __call__(self, z):
        # tanh form stays finite for large |z|
        return 0.5 * (1.0 + np.tanh(0.5 * z))

    def derivative(self, z):
        s = self(z)
        return s * (1.0 - s)


class Tanh(Activation):
    name = "tanh"

    def __call__(self, z):
        return np.tanh(z)

    def derivative(self, z):
        return 1.0 - np.tanh(z) ** 2


class ReLU(Activation):
    name = "relu"

    def __call__(self, z):
        return np.maximum(0.0, z)

    def derivative(self, z):
        return (z > 0).astype(z.dtype)


class Softmax(Activation):
    """
    Vector softmax. The shift m is the largest summation itself; seeding it
    with 0 would leave all-negative inputs unshifted.

    No derivative: the softmax layer expects the fused softmax +
    cross-entropy gradient from the loss instead of a Jacobian product.
    """
    name = "softmax"

    def __call__(self, z):
        z = np.asarray(z, dtype=np.float64)
        m = np.max(z)
        e = np.exp(z - m)
        return e / np.sum(e)


def softmax(z):
    return Softmax()(z)


_REGISTRY = {cls.name: cls for cls in (Identity, Sigmoid, Tanh, ReLU, Softmax)}


def get(name):
    """Look up an activation by name ('relu', 'tanh', ...)."""
    if isinstance(name, Activation):
        return name
    try:
        return _REGISTRY[name]()
    except KeyError:
        raise ValueError(
            f"unknown activation {name!r}, expected one of {sorted(_REGISTRY)}"
        ) from None
