"""
Transforms for Layer.set_gradients: transform(is_weight, value, index).
Applied per example, before the batch reduction in Layer.update.
"""


def l2_regularizer(layer, lam):
    # d/dw (lam/2 * w^2) = lam * w, weights only
    def transform(is_weight, value, index):
        if is_weight:
            return value + lam * layer.weights[index]
        return value
    return transform


def clip_by_value(limit):
    if limit <= 0:
        raise ValueError(f"clip limit must be positive, got {limit}")

    def transform(is_weight, value, index):
        return max(-limit, min(limit, value))
    return transform


def chain(*transforms):
    def transform(is_weight, value, index):
        for t in transforms:
            value = t(is_weight, value, index)
        return value
    return transform
