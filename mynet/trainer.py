"""
trainer.py
~~~~~~~~~~

Epoch loop around ``TrainableNetwork.fit``.

The network learns from one example per ``fit`` call. The trainer groups
examples into reporting batches only to average their loss and to give the
caller a chance to yield (e.g. to an event loop) between batches.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from mynet.errors import DimensionMismatchError
from mynet.losses import mean_absolute_error
from mynet.matrix import Matrix
from mynet.network import TrainableNetwork

logger = logging.getLogger(__name__)

Callback = Callable[[int, Dict[str, Any]], None]


@dataclass
class TrainingHistory:
    """Loss values collected during a training run."""
    batch_losses: List[float] = field(default_factory=list)
    epoch_losses: List[float] = field(default_factory=list)
    epoch_accuracies: List[Optional[float]] = field(default_factory=list)


class Trainer:
    """
    Train a network for a number of epochs, reporting progress per batch.

    Args:
        model: Network to train in place
        batch_size: Examples per reporting batch
        epochs: Passes over the training data
        on_batch_end: Called as ``on_batch_end(batch, logs)`` after each batch
        on_epoch_end: Called as ``on_epoch_end(epoch, logs)`` after each epoch
        yield_func: Called after every batch so a cooperative scheduler can
            run other work
        loss_fn: Reduces the error matrix from ``fit`` to a float
        shuffle: Visit training examples in a new random order each epoch
        rng: Random generator used for shuffling
    """

    def __init__(
        self,
        model: TrainableNetwork,
        batch_size: int = 320,
        epochs: int = 1,
        on_batch_end: Optional[Callback] = None,
        on_epoch_end: Optional[Callback] = None,
        yield_func: Optional[Callable[[], None]] = None,
        loss_fn: Callable[[Matrix], float] = mean_absolute_error,
        shuffle: bool = False,
        rng: Optional[np.random.Generator] = None
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if epochs < 1:
            raise ValueError(f"epochs must be positive, got {epochs}")
        self.model = model
        self.batch_size = batch_size
        self.epochs = epochs
        self.on_batch_end = on_batch_end
        self.on_epoch_end = on_epoch_end
        self.yield_func = yield_func
        self.loss_fn = loss_fn
        self.shuffle = shuffle
        self.rng = rng if rng is not None else np.random.default_rng()

    def train(
        self,
        images: Sequence[Sequence[float]],
        labels: Sequence[Sequence[float]],
        test_data: Optional[tuple] = None
    ) -> TrainingHistory:
        """
        Run the configured number of epochs over ``images``/``labels``.

        Args:
            images: Feature vectors
            labels: Target vectors, one per image
            test_data: Optional ``(images, labels)`` evaluated after each epoch

        Returns:
            TrainingHistory with per-batch and per-epoch mean losses
        """
        if len(images) != len(labels):
            raise DimensionMismatchError(
                f"Got {len(images)} images but {len(labels)} labels"
            )

        n = len(images)
        total_batches = -(-n // self.batch_size) * self.epochs
        history = TrainingHistory()
        batches_done = 0
        start_time = time.time()

        logger.info(
            f"Training on {n} examples: epochs={self.epochs}, "
            f"batch_size={self.batch_size}, lr={self.model.learning_rate}"
        )

        for epoch in range(1, self.epochs + 1):
            order = self.rng.permutation(n) if self.shuffle else range(n)
            order = list(order)
            epoch_loss_sum = 0.0

            for start in range(0, n, self.batch_size):
                batch_losses = [
                    self.loss_fn(self.model.fit(images[i], labels[i]))
                    for i in order[start:start + self.batch_size]
                ]
                batch_loss = sum(batch_losses) / len(batch_losses)
                epoch_loss_sum += sum(batch_losses)
                history.batch_losses.append(batch_loss)
                batches_done += 1

                if self.on_batch_end is not None:
                    self.on_batch_end(batches_done, {
                        'loss': batch_loss * 100,
                        'epoch': epoch,
                        'examples_seen': min(start + self.batch_size, n),
                        'progress': batches_done / total_batches * 100
                    })
                if self.yield_func is not None:
                    self.yield_func()

            epoch_loss = epoch_loss_sum / n if n else 0.0
            history.epoch_losses.append(epoch_loss)

            accuracy = None
            if test_data is not None:
                accuracy = self.model.evaluate(*test_data)
            history.epoch_accuracies.append(accuracy)

            logger.info(f"Epoch {epoch}/{self.epochs}: loss={epoch_loss:.5f}, accuracy={accuracy}")
            if self.on_epoch_end is not None:
                self.on_epoch_end(epoch, {
                    'loss': epoch_loss * 100,
                    'total_epochs': self.epochs,
                    'accuracy': accuracy,
                    'elapsed_time': time.time() - start_time
                })

        return history


def evaluate_percent(
    model: TrainableNetwork,
    images: Sequence[Sequence[float]],
    labels: Sequence[Sequence[float]]
) -> float:
    """Classification accuracy as a percentage."""
    return model.evaluate(images, labels) * 100
