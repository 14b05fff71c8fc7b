"""
mnist_loader.py
~~~~~~~~~~~~~~~

Load MNIST digits from a local ``.npz`` archive.

The archive holds ``train_images``, ``train_labels``, ``val_images``,
``val_labels``, ``test_images`` and ``test_labels``. Images are rows of 784
floats in [0, 1]; labels are integer digits. Labels are returned one-hot
encoded so they can be fed straight to ``TrainableNetwork.fit``.
"""

import logging
import os
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from mynet.models import IMAGE_SIZE, NUM_CLASSES

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = os.path.join('data', 'mnist.npz')

Split = Tuple[List[List[float]], List[List[float]]]


class Dataset(NamedTuple):
    train: Split
    validation: Split
    test: Split


def data_path() -> str:
    """Path of the archive, from ``MNIST_DATA_PATH`` or the default."""
    return os.getenv('MNIST_DATA_PATH', DEFAULT_DATA_PATH)


def one_hot(label: int, num_classes: int = NUM_CLASSES) -> List[float]:
    """Return a vector with 1.0 at ``label`` and 0.0 elsewhere."""
    if not 0 <= label < num_classes:
        raise ValueError(f"Label {label} out of range for {num_classes} classes")
    vector = [0.0] * num_classes
    vector[label] = 1.0
    return vector


def _to_split(images: np.ndarray, labels: np.ndarray, limit: Optional[int]) -> Split:
    if limit is not None:
        images, labels = images[:limit], labels[:limit]
    images = np.asarray(images, dtype=np.float64).reshape(len(images), IMAGE_SIZE)
    return (
        images.tolist(),
        [one_hot(int(label)) for label in labels]
    )


def load_data(path: Optional[str] = None, limit: Optional[int] = None) -> Dataset:
    """
    Load the train, validation and test splits.

    Args:
        path: Archive location (defaults to ``data_path()``)
        limit: Keep at most this many examples per split

    Raises:
        FileNotFoundError: If the archive does not exist
    """
    path = path or data_path()
    if not os.path.exists(path):
        raise FileNotFoundError(f"MNIST archive not found: {path}")

    with np.load(path) as data:
        dataset = Dataset(
            train=_to_split(data['train_images'], data['train_labels'], limit),
            validation=_to_split(data['val_images'], data['val_labels'], limit),
            test=_to_split(data['test_images'], data['test_labels'], limit),
        )

    logger.info(
        f"Loaded MNIST from {path}: {len(dataset.train[0])} training, "
        f"{len(dataset.validation[0])} validation, {len(dataset.test[0])} test"
    )
    return dataset
