"""
mynet package
~~~~~~~~~~~~~

Hand-written dense matrix library and feed-forward neural network for
MNIST digit recognition, trained by manual backpropagation. Also contains
the training loop, data loading utilities and API server.
"""

from mynet.errors import (
    DimensionMismatchError,
    InvalidOperandError,
    NetworkError,
    ShapeMismatchError,
    UnknownKindError,
)
from mynet.matrix import Matrix
from mynet.activations import ActivationKind, get_activation
from mynet.layer import Layer, LayerRole, LayerSpec, LayerTrace, PassContext
from mynet.network import ForwardNetwork, TrainableNetwork, arg_max

__version__ = "1.0.0"
