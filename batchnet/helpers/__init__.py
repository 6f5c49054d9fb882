from .Batch import Batch
from .Parallel import parallel_map, partition, default_workers
from .errors import LayerError, ShapeMismatchError, SequenceError, ParallelComputationError

__all__ = [
    "Batch",
    "parallel_map",
    "partition",
    "default_workers",
    "LayerError",
    "ShapeMismatchError",
    "SequenceError",
    "ParallelComputationError",
]
