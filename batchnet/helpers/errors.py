class LayerError(Exception):
    """Base class for every error raised by the layer engine."""


class ShapeMismatchError(LayerError, ValueError):
    """A batch or vector does not have the size the layer expects."""


class SequenceError(LayerError, RuntimeError):
    """Forward -> Backward -> Update was called out of order."""

    def __init__(self, message):
        super().__init__(f"invalid call sequence: {message}")


class ParallelComputationError(LayerError):
    """
    One or more per-example computations failed inside a parallel map.
    failures: list of (index, exception), sorted by batch index.
    """

    def __init__(self, failures):
        self.failures = sorted(failures, key=lambda f: f[0])
        shown = ", ".join(str(i) for i, _ in self.failures[:10])
        if len(self.failures) > 10:
            shown += ", ..."
        first = self.failures[0][1]
        super().__init__(
            f"{len(self.failures)} example(s) failed at index [{shown}]: "
            f"{type(first).__name__}: {first}"
        )

    @property
    def indices(self):
        return [i for i, _ in self.failures]
