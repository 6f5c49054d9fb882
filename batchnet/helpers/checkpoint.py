import numpy as np

from .errors import ShapeMismatchError


def pack_state(layers):
    # weights then biases for each layer: p0, p1, p2, ...
    arrays = {}
    i = 0
    for L in layers:
        for p in L.params():
            arrays[f"p{i}"] = np.array(p, copy=True)
            i += 1
    return arrays


def unpack_state(layers, arrays):
    i = 0
    for L in layers:
        w_key, b_key = f"p{i}", f"p{i + 1}"
        if w_key not in arrays or b_key not in arrays:
            raise ShapeMismatchError(f"checkpoint has no parameters for layer {L.name} ({w_key}, {b_key})")
        # the property setters validate the lengths
        L.weights = arrays[w_key]
        L.biases = arrays[b_key]
        i += 2
    if f"p{i}" in arrays:
        raise ShapeMismatchError(f"checkpoint holds more parameters than the {len(layers)} layers given")


def save_params(layers, path):
    np.savez(path, **pack_state(layers))
    return str(path)


def load_params(layers, path):
    with np.load(path) as data:
        unpack_state(layers, {k: data[k] for k in data.files})
