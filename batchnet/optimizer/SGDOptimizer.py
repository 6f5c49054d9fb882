class SGDOptimizer:
    """
    Plain SGD as an update rule: rule(value, gradient) -> new value.
    Layers call it once per weight and bias with the batch-mean gradient.
    """

    def __init__(self, lr=1e-2, weight_decay=0.0):
        self.lr = lr
        self.wd = weight_decay

    def __call__(self, value, gradient):
        if self.wd != 0.0:
            return value - self.lr * (gradient + self.wd * value)  # L2 weight decay
        return value - self.lr * gradient


def identity_rule(value, gradient):
    # leaves every parameter untouched
    return value
