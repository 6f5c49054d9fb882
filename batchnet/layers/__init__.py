from .Layer import Layer, ForwardContext, GradientPair
from .Softmax import Softmax
from .FullyConnectedLayer import FullyConnectedLayer
from .Activation import Identity, Sigmoid, Tanh, ReLU

__all__ = [
    "Layer",
    "ForwardContext",
    "GradientPair",
    "Softmax",
    "FullyConnectedLayer",
    "Identity",
    "Sigmoid",
    "Tanh",
    "ReLU",
]
