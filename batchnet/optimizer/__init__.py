from .SGDOptimizer import SGDOptimizer, identity_rule
from .GradientTransforms import l2_regularizer, clip_by_value, chain

__all__ = ["SGDOptimizer", "identity_rule", "l2_regularizer", "clip_by_value", "chain"]
