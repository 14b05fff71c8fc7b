"""
models.py
~~~~~~~~~

Factory for the digit classifier and helpers for reshaping the flat image
and label buffers the dataset hands out.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from mynet.activations import ActivationLike
from mynet.errors import DimensionMismatchError, UnknownKindError
from mynet.layer import LayerRole, LayerSpec
from mynet.network import TrainableNetwork

logger = logging.getLogger(__name__)

IMAGE_H = 28
IMAGE_W = 28
IMAGE_SIZE = IMAGE_H * IMAGE_W
NUM_CLASSES = 10
HIDDEN_NODES = 42

MODEL_TYPES = ('MyNet',)


def create_model(
    model_type: str,
    learning_rate: float = 0.1,
    rng: Optional[np.random.Generator] = None
) -> TrainableNetwork:
    """
    Build a fresh network of the named type.

    Only ``'MyNet'`` is available: a 784-node input layer, a 42-node ReLU
    hidden layer and a 10-node output layer.

    Raises:
        UnknownKindError: For any other model type
    """
    if model_type != 'MyNet':
        raise UnknownKindError(f"Invalid model type: {model_type}")

    specs = [
        LayerSpec(IMAGE_SIZE, IMAGE_SIZE, 'relu', LayerRole.INPUT),
        LayerSpec(IMAGE_SIZE, HIDDEN_NODES, 'relu', LayerRole.HIDDEN),
        LayerSpec(HIDDEN_NODES, NUM_CLASSES, 'softmax', LayerRole.OUTPUT),
    ]
    model = TrainableNetwork.from_specs(specs, learning_rate, rng)
    logger.info(f"Created {model_type} with layers {model.layer_node_counts}")
    return model


def build_network(
    layer_sizes: Sequence[int],
    hidden_activation: ActivationLike = 'relu',
    output_activation: ActivationLike = 'softmax',
    learning_rate: float = 0.1,
    rng: Optional[np.random.Generator] = None
) -> TrainableNetwork:
    """
    Build a dense network from a list of node counts.

    ``layer_sizes[0]`` is the input size and ``layer_sizes[-1]`` the output
    size; each size in between becomes a hidden layer.

    Example:
        build_network([784, 42, 10]) has the same shape as MyNet.
    """
    if len(layer_sizes) < 2:
        raise ValueError("Need at least an input and an output size")

    specs = [LayerSpec(layer_sizes[0], layer_sizes[0], hidden_activation, LayerRole.INPUT)]
    for n_in, n_out in zip(layer_sizes[:-2], layer_sizes[1:-1]):
        specs.append(LayerSpec(n_in, n_out, hidden_activation, LayerRole.HIDDEN))
    specs.append(LayerSpec(layer_sizes[-2], layer_sizes[-1], output_activation, LayerRole.OUTPUT))
    return TrainableNetwork.from_specs(specs, learning_rate, rng)


def split_flattened(
    xs: Sequence[float],
    ys: Optional[Sequence[float]] = None,
    image_size: int = IMAGE_SIZE,
    num_classes: int = NUM_CLASSES
) -> Tuple[List[List[float]], List[List[float]]]:
    """
    Cut flat image and label buffers into one vector per example.

    Args:
        xs: ``n * image_size`` pixel values
        ys: ``n * num_classes`` one-hot label values, or None

    Returns:
        (images, labels); labels is empty when ``ys`` is None
    """
    if len(xs) % image_size:
        raise DimensionMismatchError(
            f"Image buffer of length {len(xs)} is not a multiple of {image_size}"
        )
    count = len(xs) // image_size
    if ys is not None and len(ys) != count * num_classes:
        raise DimensionMismatchError(
            f"Label buffer of length {len(ys)} does not hold {count} labels "
            f"of size {num_classes}"
        )

    images = [list(xs[i * image_size:(i + 1) * image_size]) for i in range(count)]
    labels = []
    if ys is not None:
        labels = [list(ys[i * num_classes:(i + 1) * num_classes]) for i in range(count)]
    return images, labels
