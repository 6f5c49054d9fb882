from .Initializers import (
    lecun_normal,
    lecun_uniform,
    glorot_normal,
    glorot_uniform,
    he_normal,
    he_uniform,
    xavier_normal,
    xavier_uniform,
    bind,
    seeded,
    constant,
)

__all__ = [
    "lecun_normal",
    "lecun_uniform",
    "glorot_normal",
    "glorot_uniform",
    "he_normal",
    "he_uniform",
    "xavier_normal",
    "xavier_uniform",
    "bind",
    "seeded",
    "constant",
]
