import numpy as np

from .errors import ShapeMismatchError


class Batch:
    """
    Ordered, fixed-size collection of per-example vectors.

    Elements are stored as 1-D float64 arrays in a tuple, so the container
    itself cannot be reordered or resized once built. Workers can read it
    concurrently and address results by the original index.
    """

    __slots__ = ("_items",)

    def __init__(self, items):
        vectors = tuple(np.asarray(v, dtype=np.float64).reshape(-1) for v in items)
        if len(vectors) == 0:
            raise ShapeMismatchError("a batch must contain at least one example")
        self._items = vectors

    @classmethod
    def from_array(cls, x):
        # x shape: (batch, features)
        x = np.asarray(x, dtype=np.float64)
        if x.ndim == 1:
            x = x.reshape(1, -1)
        if x.ndim != 2:
            raise ShapeMismatchError(f"expected a 2-D array, got shape {x.shape}")
        return cls(list(x))

    @property
    def size(self):
        return len(self._items)

    def __len__(self):
        return len(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def __iter__(self):
        return iter(self._items)

    def to_array(self):
        # return: (batch, features); ragged batches cannot be stacked
        widths = {v.shape[0] for v in self._items}
        if len(widths) != 1:
            raise ShapeMismatchError(f"cannot stack vectors of lengths {sorted(widths)}")
        return np.stack(self._items, axis=0)

    def check_width(self, width, what="vector"):
        for index, v in enumerate(self._items):
            if v.shape[0] != width:
                raise ShapeMismatchError(
                    f"{what} at index {index} has length {v.shape[0]}, expected {width}"
                )

    def __repr__(self):
        return f"Batch(size={self.size})"
