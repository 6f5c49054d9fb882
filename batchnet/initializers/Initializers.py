"""
Weight initializers.

Each function samples ONE scalar for a layer with the given fan-in and
fan-out. All of them accept the same (fan_in, fan_out) signature so any of
them can be handed to a layer constructor; the LeCun and He variants ignore
fan_out.

Randomness comes from the explicit `rng` argument (a numpy Generator). When
it is omitted a process-wide generator is used under a lock, so layers
initialised from several threads never share unguarded state. Prefer
bind()/seeded() for reproducible runs.
"""
import functools
import threading

import numpy as np

_shared_rng = np.random.default_rng()
_shared_lock = threading.Lock()


def _uniform(low, high, rng):
    if rng is not None:
        return float(rng.uniform(low, high))
    with _shared_lock:
        return float(_shared_rng.uniform(low, high))


def _check_fan(fan_in, fan_out=None):
    if fan_in <= 0:
        raise ValueError(f"fan_in must be positive, got {fan_in}")
    if fan_out is not None and fan_out <= 0:
        raise ValueError(f"fan_out must be positive, got {fan_out}")


def lecun_normal(fan_in, fan_out=None, rng=None):
    _check_fan(fan_in)
    return _uniform(-1.0, 1.0, rng) * np.sqrt(1.0 / fan_in)


def lecun_uniform(fan_in, fan_out=None, rng=None):
    _check_fan(fan_in)
    a = np.sqrt(3.0 / fan_in)
    return _uniform(-a, a, rng)


def glorot_normal(fan_in, fan_out, rng=None):
    _check_fan(fan_in, fan_out)
    return _uniform(-1.0, 1.0, rng) * np.sqrt(2.0 / (fan_in + fan_out))


def glorot_uniform(fan_in, fan_out, rng=None):
    _check_fan(fan_in, fan_out)
    a = np.sqrt(6.0 / (fan_in + fan_out))
    return _uniform(-a, a, rng)


def he_normal(fan_in, fan_out=None, rng=None):
    _check_fan(fan_in)
    return _uniform(-1.0, 1.0, rng) * np.sqrt(2.0 / fan_in)


def he_uniform(fan_in, fan_out=None, rng=None):
    _check_fan(fan_in)
    a = np.sqrt(6.0 / fan_in)
    return _uniform(-a, a, rng)


# Glorot is also known as Xavier
xavier_normal = glorot_normal
xavier_uniform = glorot_uniform


def bind(initializer, rng):
    """Return a (fan_in, fan_out) -> float sampler drawing from rng."""
    return functools.partial(initializer, rng=rng)


def seeded(initializer, seed):
    """Like bind(), with a fresh generator seeded from `seed`."""
    return bind(initializer, np.random.default_rng(seed))


def constant(value):
    """Sampler returning the same value for every weight (tests, debugging)."""
    def init(fan_in, fan_out=None):
        return float(value)
    return init
