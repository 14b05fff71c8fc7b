"""
activations.py
~~~~~~~~~~~~~~

Pointwise activation functions and their derivatives.

Derivatives are expressed in terms of the activation's *output* ``y``,
which is what a layer caches after its forward pass.
"""

import enum
import logging
import math
from typing import Callable, NamedTuple, Union

logger = logging.getLogger(__name__)


class ActivationKind(enum.Enum):
    SIGMOID = 1
    RELU = 2
    SOFTMAX = 3


class ActivationFunction(NamedTuple):
    """An activation and its derivative, both scalar -> scalar."""
    name: str
    activation: Callable[[float], float]
    derivative: Callable[[float], float]


def sigmoid(x: float) -> float:
    # Split on sign so math.exp never overflows
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def sigmoid_derivative(y: float) -> float:
    return y * (1.0 - y)


def relu(x: float) -> float:
    return x if x > 0 else 0.0


def relu_derivative(y: float) -> float:
    return 1.0 if y > 0 else 0.0


# The "softmax" kind is the logistic function applied per node; outputs are
# not normalized across the layer.
softmax = sigmoid
softmax_derivative = sigmoid_derivative


_REGISTRY = {
    ActivationKind.SIGMOID: ActivationFunction('sigmoid', sigmoid, sigmoid_derivative),
    ActivationKind.RELU: ActivationFunction('relu', relu, relu_derivative),
    ActivationKind.SOFTMAX: ActivationFunction('softmax', softmax, softmax_derivative),
}

ActivationLike = Union[ActivationKind, str, int]


def resolve_kind(kind: ActivationLike) -> ActivationKind:
    """
    Turn an enum member, a name or an enum value into an ActivationKind.

    Unknown kinds are logged and fall back to SIGMOID.
    """
    if isinstance(kind, ActivationKind):
        return kind
    if isinstance(kind, str):
        try:
            return ActivationKind[kind.strip().upper()]
        except KeyError:
            pass
    elif isinstance(kind, int):
        try:
            return ActivationKind(kind)
        except ValueError:
            pass

    logger.warning(f"Activation type {kind!r} invalid, using sigmoid by default")
    return ActivationKind.SIGMOID


def get_activation(kind: ActivationLike) -> ActivationFunction:
    """Return the activation/derivative pair registered for ``kind``."""
    return _REGISTRY[resolve_kind(kind)]
