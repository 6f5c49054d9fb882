from .helpers.Batch import Batch
from .helpers.errors import LayerError, ShapeMismatchError, SequenceError, ParallelComputationError
from .helpers.checkpoint import save_params, load_params
from .layers import Layer, ForwardContext, Softmax, FullyConnectedLayer
from .loss import CrossEntropyLoss
from .optimizer import SGDOptimizer
from .Trainer import Trainer

__version__ = "0.1.0"

__all__ = [
    "Batch",
    "LayerError",
    "ShapeMismatchError",
    "SequenceError",
    "ParallelComputationError",
    "save_params",
    "load_params",
    "Layer",
    "ForwardContext",
    "Softmax",
    "FullyConnectedLayer",
    "CrossEntropyLoss",
    "SGDOptimizer",
    "Trainer",
]
