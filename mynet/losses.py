"""
losses.py
~~~~~~~~~

Reductions from the raw error matrix returned by ``TrainableNetwork.fit``
to a single number.
"""

import numpy as np

from mynet.matrix import Matrix


def mean_absolute_error(error: Matrix) -> float:
    """Mean of ``|e|`` over every output node."""
    if error.data.size == 0:
        return 0.0
    return float(np.mean(np.abs(error.data)))


def mean_squared_error(error: Matrix) -> float:
    """Mean of ``e**2`` over every output node."""
    if error.data.size == 0:
        return 0.0
    return float(np.mean(np.square(error.data)))


def first_node_absolute_error(error: Matrix) -> float:
    """``|e|`` of the first output node only."""
    return abs(error[0, 0])
